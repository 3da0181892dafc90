"""
Gateway control plane Azure Functions app.

HTTP routes for accounts, sessions, subscriptions, administration and
gateway instances, plus a timer that expires elapsed subscriptions and
sends expiry warnings.

Run with: func start
"""

import azure.functions as func

from gateway_control.api.handlers import ControlPlaneHandlers
from gateway_control.config import get_config
from gateway_control.control_plane import ControlPlane
from gateway_control.db.db_config import initialize_db
from gateway_control.utils.logger import configure_logging

# Initialize once per worker
app = func.FunctionApp(http_auth_level=func.AuthLevel.ANONYMOUS)

logger = configure_logging("gateway-control")
control_plane = ControlPlane(get_config(), initialize_db(), logger=logger)
handlers = ControlPlaneHandlers(control_plane)


# auth/*


@app.route(route="auth/register", methods=["POST"])
def register(req: func.HttpRequest) -> func.HttpResponse:
    return handlers.register(req)


@app.route(route="auth/verify-email", methods=["GET"])
def verify_email(req: func.HttpRequest) -> func.HttpResponse:
    return handlers.verify_email(req)


@app.route(route="auth/login", methods=["POST"])
def login(req: func.HttpRequest) -> func.HttpResponse:
    return handlers.login(req)


@app.route(route="auth/logout", methods=["POST"])
def logout(req: func.HttpRequest) -> func.HttpResponse:
    return handlers.logout(req)


@app.route(route="auth/resend-verification", methods=["POST"])
def resend_verification(req: func.HttpRequest) -> func.HttpResponse:
    return handlers.resend_verification(req)


@app.route(route="auth/forgot-password", methods=["POST"])
def forgot_password(req: func.HttpRequest) -> func.HttpResponse:
    return handlers.forgot_password(req)


@app.route(route="auth/reset-password", methods=["POST"])
def reset_password(req: func.HttpRequest) -> func.HttpResponse:
    return handlers.reset_password(req)


@app.route(route="auth/me", methods=["GET"])
def me(req: func.HttpRequest) -> func.HttpResponse:
    return handlers.me(req)


# account/*


@app.route(route="account/apikey/regenerate", methods=["POST"])
def regenerate_api_key(req: func.HttpRequest) -> func.HttpResponse:
    return handlers.regenerate_api_key(req)


# user/*


@app.route(route="user/instances", methods=["GET"])
def my_instances(req: func.HttpRequest) -> func.HttpResponse:
    return handlers.my_instances(req)


# subscription/*


@app.route(route="subscription/me", methods=["GET"])
def my_subscription(req: func.HttpRequest) -> func.HttpResponse:
    return handlers.my_subscription(req)


@app.route(route="subscription/all", methods=["GET"])
def list_subscriptions(req: func.HttpRequest) -> func.HttpResponse:
    return handlers.list_subscriptions(req)


@app.route(route="subscription/stats", methods=["GET"])
def subscription_stats(req: func.HttpRequest) -> func.HttpResponse:
    return handlers.subscription_stats(req)


@app.route(route="subscription/expiring", methods=["GET"])
def expiring_subscriptions(req: func.HttpRequest) -> func.HttpResponse:
    return handlers.expiring_subscriptions(req)


@app.route(route="subscription/renew/{tenantId}", methods=["POST"])
def renew_subscription(req: func.HttpRequest) -> func.HttpResponse:
    return handlers.renew_subscription(req)


@app.route(route="subscription/cancel/{tenantId}", methods=["POST"])
def cancel_subscription(req: func.HttpRequest) -> func.HttpResponse:
    return handlers.cancel_subscription(req)


@app.route(route="subscription/update-expired", methods=["POST"])
def update_expired(req: func.HttpRequest) -> func.HttpResponse:
    return handlers.update_expired(req)


# admin/*


@app.route(route="admin/users", methods=["GET"])
def list_users(req: func.HttpRequest) -> func.HttpResponse:
    return handlers.list_users(req)


@app.route(route="admin/users/{tenantId}/role", methods=["PATCH"])
def update_user_role(req: func.HttpRequest) -> func.HttpResponse:
    return handlers.update_user_role(req)


@app.route(route="admin/users/{tenantId}", methods=["DELETE"])
def delete_user(req: func.HttpRequest) -> func.HttpResponse:
    return handlers.delete_user(req)


@app.route(route="admin/stats", methods=["GET"])
def platform_stats(req: func.HttpRequest) -> func.HttpResponse:
    return handlers.platform_stats(req)


@app.route(route="admin/instances", methods=["GET"])
def admin_instances(req: func.HttpRequest) -> func.HttpResponse:
    return handlers.admin_instances(req)


@app.route(route="admin/role", methods=["GET"])
def admin_role(req: func.HttpRequest) -> func.HttpResponse:
    return handlers.admin_role(req)


@app.route(route="admin/audit-logs", methods=["GET"])
def audit_logs(req: func.HttpRequest) -> func.HttpResponse:
    return handlers.audit_logs(req)


@app.route(route="admin/audit-stats", methods=["GET"])
def audit_stats(req: func.HttpRequest) -> func.HttpResponse:
    return handlers.audit_stats(req)


# instance/*


@app.route(route="instance/fetchInstances", methods=["GET"])
def fetch_instances(req: func.HttpRequest) -> func.HttpResponse:
    return handlers.fetch_instances(req)


@app.route(route="instance/create", methods=["POST"])
def create_instance(req: func.HttpRequest) -> func.HttpResponse:
    return handlers.create_instance(req)


@app.route(route="instance/{instanceName}", methods=["GET"])
def get_instance(req: func.HttpRequest) -> func.HttpResponse:
    return handlers.get_instance(req)


@app.route(route="instance/{instanceName}", methods=["DELETE"])
def delete_instance(req: func.HttpRequest) -> func.HttpResponse:
    return handlers.delete_instance(req)


# Maintenance


@app.timer_trigger(schedule="0 0 * * * *", arg_name="timer", run_on_startup=False)
def subscription_maintenance(timer: func.TimerRequest) -> None:
    if timer.past_due:
        logger.warning("Subscription maintenance timer is past due")
    control_plane.run_maintenance()
