from .base import SocialPoster
from .dispatcher import DispatchSummary, SocialDispatcher
from .webhook import WebhookSocialPoster

__all__ = ["SocialPoster", "DispatchSummary", "SocialDispatcher", "WebhookSocialPoster"]
