"""
Link and member routes — the quota-bound writes and the public redirect.
Blueprint mounted at /api/workspaces (redirects at /r/<slug>)

Every write follows the same order: usage gate -> business write + commit ->
counter effect. The counter is never touched for a write that did not commit.
"""
import secrets
from functools import wraps
from urllib.parse import urlparse

from flask import Blueprint, jsonify, request, session, redirect, g
from sqlalchemy.exc import IntegrityError

from models import db, User, Workspace, WorkspaceMembership, Link, ClickEvent
from rate_limiter import limiter
from core.usage import require_usage_limit, increment_usage, decrement_usage, track_click

links_bp = Blueprint('links', __name__, url_prefix='/api/workspaces')
redirect_bp = Blueprint('redirect', __name__)


def member_required(f):
    """Session user must hold a membership in the route's workspace."""
    @wraps(f)
    def decorated(*args, **kwargs):
        user_id = session.get('user_id')
        if not user_id:
            return jsonify({'error': 'Authentication required'}), 401
        workspace_id = kwargs.get('workspace_id')
        if db.session.get(Workspace, workspace_id) is None:
            return jsonify({'error': 'Workspace not found'}), 404
        membership = WorkspaceMembership.query.filter_by(
            workspace_id=workspace_id, user_id=user_id,
        ).first()
        if not membership:
            return jsonify({'error': 'Access denied'}), 403
        g.membership = membership
        return f(*args, **kwargs)
    return decorated


def _is_valid_url(url):
    parsed = urlparse(url or '')
    return parsed.scheme in ('http', 'https') and bool(parsed.netloc)


# ===================================================================
# LINKS
# ===================================================================

@links_bp.route('/<int:workspace_id>/links', methods=['GET'])
@member_required
def list_links(workspace_id):
    links = Link.query.filter_by(workspace_id=workspace_id).order_by(Link.created_at.desc()).all()
    return jsonify({'links': [link.to_dict() for link in links]})


@links_bp.route('/<int:workspace_id>/links', methods=['POST'])
@member_required
@require_usage_limit('links')
def create_link(workspace_id):
    """POST body: {"destination_url": str, "slug": str?}"""
    data = request.get_json(silent=True) or {}
    destination_url = (data.get('destination_url') or '').strip()
    slug = (data.get('slug') or '').strip() or secrets.token_urlsafe(5)

    if not _is_valid_url(destination_url):
        return jsonify({'error': 'A valid http(s) destination_url is required'}), 400

    link = Link(workspace_id=workspace_id, slug=slug, destination_url=destination_url)
    db.session.add(link)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': f'Slug "{slug}" is already taken'}), 409

    increment_usage(workspace_id, 'links')

    response = {'link': link.to_dict(), 'usage': g.usage_check.to_dict()}
    return jsonify(response), 201


@links_bp.route('/<int:workspace_id>/links/<int:link_id>', methods=['DELETE'])
@member_required
def delete_link(workspace_id, link_id):
    link = Link.query.filter_by(id=link_id, workspace_id=workspace_id).first()
    if not link:
        return jsonify({'error': 'Link not found'}), 404

    db.session.delete(link)
    db.session.commit()

    decrement_usage(workspace_id, 'links')
    return jsonify({'success': True})


# ===================================================================
# MEMBERS
# ===================================================================

@links_bp.route('/<int:workspace_id>/members', methods=['POST'])
@member_required
@require_usage_limit('users')
def add_member(workspace_id):
    """POST body: {"email": str, "role": "admin"|"member"}"""
    if g.membership.role not in ('owner', 'admin'):
        return jsonify({'error': 'Only workspace admins can add members'}), 403

    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    role = data.get('role', 'member')

    if not email or '@' not in email:
        return jsonify({'error': 'A valid email is required'}), 400
    if role not in ('admin', 'member'):
        return jsonify({'error': 'role must be admin or member'}), 400

    member = User.query.filter_by(email=email).first()
    if not member:
        member = User(email=email)
        db.session.add(member)
        db.session.flush()

    db.session.add(WorkspaceMembership(workspace_id=workspace_id, user_id=member.id, role=role))
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': 'User is already a member of this workspace'}), 409

    increment_usage(workspace_id, 'users')
    return jsonify({'success': True, 'user_id': member.id, 'role': role}), 201


@links_bp.route('/<int:workspace_id>/members/<int:user_id>', methods=['DELETE'])
@member_required
def remove_member(workspace_id, user_id):
    if g.membership.role not in ('owner', 'admin'):
        return jsonify({'error': 'Only workspace admins can remove members'}), 403

    membership = WorkspaceMembership.query.filter_by(
        workspace_id=workspace_id, user_id=user_id,
    ).first()
    if not membership:
        return jsonify({'error': 'Member not found'}), 404
    if membership.role == 'owner':
        return jsonify({'error': 'The workspace owner cannot be removed'}), 400

    db.session.delete(membership)
    db.session.commit()

    decrement_usage(workspace_id, 'users')
    return jsonify({'success': True})


# ===================================================================
# PUBLIC REDIRECT
# ===================================================================

@redirect_bp.route('/r/<slug>', methods=['GET'])
@limiter.limit("120 per minute")
def follow_link(slug):
    """Record the click, count it, redirect. Counting failures never block the redirect."""
    link = Link.query.filter_by(slug=slug).first()
    if not link:
        return jsonify({'error': 'Link not found'}), 404

    db.session.add(ClickEvent(link_id=link.id))
    db.session.commit()

    track_click(link.id, link.workspace_id)
    return redirect(link.destination_url, code=302)
