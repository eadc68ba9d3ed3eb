"""
Database models for the link dashboard: workspaces, links, clicks, usage metrics.
"""
from datetime import datetime
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


class User(db.Model):
    """Dashboard user. Identity is provided upstream; we only keep the profile."""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    name = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # System administrators can change limits on any workspace
    is_admin = db.Column(db.Boolean, default=False, nullable=False, index=True)

    memberships = db.relationship('WorkspaceMembership', backref='user', lazy='dynamic')

    def __repr__(self):
        return f'<User {self.email}>'


class Workspace(db.Model):
    """Tenant. Plan tier plus optional per-workspace limit overrides."""
    __tablename__ = 'workspaces'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(100), unique=True, nullable=False, index=True)

    # Plan tier: 'free', 'starter', 'pro', 'business'
    plan = db.Column(db.String(50), default='free', nullable=False, index=True)

    # Override columns. NULL = use tier default, -1 = unlimited
    max_links = db.Column(db.Integer, nullable=True)
    max_clicks = db.Column(db.Integer, nullable=True)
    max_users = db.Column(db.Integer, nullable=True)

    # {"beta_user": bool, "vip_customer": bool,
    #  "temp_increases": {"links": int, "clicks": int, "users": int, "expires": iso8601}}
    custom_limits = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    memberships = db.relationship('WorkspaceMembership', backref='workspace', lazy='dynamic',
                                  cascade='all, delete-orphan')
    links = db.relationship('Link', backref='workspace', lazy='dynamic',
                            cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Workspace {self.slug} ({self.plan})>'

    def get_owner(self):
        """Return the owning User, or None if the workspace has no owner row."""
        membership = self.memberships.filter_by(role='owner').order_by(
            WorkspaceMembership.created_at.asc()
        ).first()
        return membership.user if membership else None

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'slug': self.slug,
            'plan': self.plan,
            'max_links': self.max_links,
            'max_clicks': self.max_clicks,
            'max_users': self.max_users,
            'custom_limits': self.custom_limits,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class WorkspaceMembership(db.Model):
    """A user's seat in a workspace. Counted against the users limit."""
    __tablename__ = 'workspace_memberships'
    __table_args__ = (
        db.UniqueConstraint('workspace_id', 'user_id', name='uq_workspace_member'),
    )

    id = db.Column(db.Integer, primary_key=True)
    workspace_id = db.Column(db.Integer, db.ForeignKey('workspaces.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    role = db.Column(db.String(20), default='member', nullable=False)  # 'owner', 'admin', 'member'
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<WorkspaceMembership ws={self.workspace_id} user={self.user_id} {self.role}>'


class Link(db.Model):
    """Short link owned by a workspace."""
    __tablename__ = 'links'

    id = db.Column(db.Integer, primary_key=True)
    workspace_id = db.Column(db.Integer, db.ForeignKey('workspaces.id'), nullable=False, index=True)
    slug = db.Column(db.String(255), unique=True, nullable=False, index=True)
    destination_url = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    clicks = db.relationship('ClickEvent', backref='link', lazy='dynamic',
                             cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Link {self.slug}>'

    def to_dict(self):
        return {
            'id': self.id,
            'workspace_id': self.workspace_id,
            'slug': self.slug,
            'destination_url': self.destination_url,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class ClickEvent(db.Model):
    """One redirect through a short link."""
    __tablename__ = 'click_events'

    id = db.Column(db.Integer, primary_key=True)
    link_id = db.Column(db.Integer, db.ForeignKey('links.id'), nullable=False, index=True)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f'<ClickEvent link={self.link_id} at {self.timestamp}>'


class UsageMetric(db.Model):
    """Durable mirror of a fast-store usage counter.

    One row per (workspace, metric_type, period, period_start). Links and users use
    a single 'lifetime' row; clicks get one 'monthly' row per calendar month.
    """
    __tablename__ = 'usage_metrics'
    __table_args__ = (
        db.UniqueConstraint('workspace_id', 'metric_type', 'period', 'period_start',
                            name='unique_workspace_metric_period'),
    )

    id = db.Column(db.Integer, primary_key=True)
    workspace_id = db.Column(db.Integer, db.ForeignKey('workspaces.id'), nullable=False, index=True)
    metric_type = db.Column(db.String(20), nullable=False)  # 'links', 'clicks', 'users'
    period = db.Column(db.String(20), nullable=False)  # 'lifetime', 'monthly'
    period_start = db.Column(db.DateTime, nullable=False)
    period_end = db.Column(db.DateTime, nullable=False)
    value = db.Column(db.Integer, default=0, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<UsageMetric ws={self.workspace_id} {self.metric_type}/{self.period}={self.value}>'

    def to_dict(self):
        return {
            'workspace_id': self.workspace_id,
            'metric_type': self.metric_type,
            'period': self.period,
            'period_start': self.period_start.isoformat(),
            'period_end': self.period_end.isoformat(),
            'value': self.value,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class AuditLog(db.Model):
    """Append-only record of limit changes and usage alert notifications."""
    __tablename__ = 'audit_logs'

    id = db.Column(db.Integer, primary_key=True)
    workspace_id = db.Column(db.Integer, db.ForeignKey('workspaces.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    action = db.Column(db.String(50), nullable=False, index=True)
    entity_type = db.Column(db.String(50), nullable=False)
    entity_id = db.Column(db.String(100))
    metadata_json = db.Column('metadata', db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    user = db.relationship('User')

    def __repr__(self):
        return f'<AuditLog ws={self.workspace_id} {self.action}>'

    def to_dict(self):
        return {
            'id': self.id,
            'workspace_id': self.workspace_id,
            'user_id': self.user_id,
            'user_email': self.user.email if self.user else None,
            'action': self.action,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'metadata': self.metadata_json,
            'created_at': self.created_at.isoformat(),
        }
