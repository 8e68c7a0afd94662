"""
Video chat proxy built with FastAPI, exposing
- an upload endpoint forwarding videos to Memories.ai,
- a chat endpoint relaying the Memories.ai event stream,
- and a webhook receiving video processing notifications.

The `video_chat.client` package holds the matching client side: the
stream parser, the chat interface and the upload manager.
"""

__version__ = "0.2.0"
