"""Push notification requests, delivery through APNs and FCM, and delivery statistics."""

__version__ = "0.1.0"