from .service import ChannelService, ChatSummary

__all__ = ["ChannelService", "ChatSummary"]
