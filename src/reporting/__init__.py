from .alert_message import AlertContext, build_alert_message

__all__ = ["AlertContext", "build_alert_message"]
