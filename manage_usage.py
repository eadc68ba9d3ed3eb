"""
Usage management utility
Run the usage jobs by hand and manage system administrators
"""
from server import app
from models import db, User
import sys


def run_job(name):
    """Run one recurring usage job now"""
    from core.usage import get_scheduler

    with app.app_context():
        report = get_scheduler(app).run_job(name)
        if report['success']:
            print(f"Job {name} finished in {report['elapsed_seconds']}s: {report['result']}")
        else:
            print(f"Job {name} failed: {report['error']}")
        return report['success']


def recalculate(workspace_id):
    """Rebuild one workspace's counters from the database"""
    from core.usage import recalculate_usage
    from core.usage.errors import WorkspaceNotFound
    from core.usage.reader import load_workspace

    with app.app_context():
        try:
            load_workspace(workspace_id)
        except WorkspaceNotFound:
            print(f"Workspace not found: {workspace_id}")
            return False
        counts = recalculate_usage(workspace_id)
        print(f"Workspace {workspace_id}: {counts}")
        return True


def send_alerts():
    """Evaluate usage thresholds and email workspace owners"""
    from core.usage import evaluate_all_usage_alerts

    with app.app_context():
        summary = evaluate_all_usage_alerts()
        print(f"Checked {summary['workspaces_checked']} workspaces, "
              f"sent {summary['alerts_sent']} alerts, {summary['errors']} errors")
        return summary['errors'] == 0


def set_admin(email, is_admin):
    """Grant or revoke system administrator rights"""
    with app.app_context():
        user = User.query.filter_by(email=email.lower().strip()).first()

        if not user:
            print(f"User not found: {email}")
            return False

        if user.is_admin == is_admin:
            print(f"User {email} already has is_admin={is_admin}")
            return True

        user.is_admin = is_admin
        db.session.commit()
        print(f"Set is_admin={is_admin} for {email}")
        return True


def show_usage():
    """Show usage information"""
    print("""
Usage Management Utility

Usage:
    python manage_usage.py sync                      - Sync all counters to the database
    python manage_usage.py reset                     - Reset this month's click counters
    python manage_usage.py recalculate <workspace>   - Rebuild one workspace's counters
    python manage_usage.py alerts                    - Send due usage alert emails
    python manage_usage.py promote <email>           - Make user a system admin
    python manage_usage.py demote <email>            - Remove system admin rights
    """)


if __name__ == '__main__':
    if len(sys.argv) < 2:
        show_usage()
        sys.exit(1)

    command = sys.argv[1].lower()
    ok = True

    if command == 'sync':
        ok = run_job('daily_usage_sync')
    elif command == 'reset':
        ok = run_job('monthly_click_reset')
    elif command == 'alerts':
        ok = send_alerts()
    elif command in ('recalculate', 'promote', 'demote'):
        if len(sys.argv) < 3:
            print("Argument required")
            show_usage()
            sys.exit(1)
        if command == 'recalculate':
            if not sys.argv[2].isdigit():
                print("Workspace id must be an integer")
                sys.exit(1)
            ok = recalculate(int(sys.argv[2]))
        else:
            ok = set_admin(sys.argv[2], command == 'promote')
    else:
        print(f"Unknown command: {command}")
        show_usage()
        sys.exit(1)

    sys.exit(0 if ok else 1)
