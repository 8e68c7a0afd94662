"""Terminal front end: run the proxy, upload videos, and chat about them."""

import argparse
import asyncio
import sys

import httpx
import uvicorn

from .client import ChatError, ChatInterface, ContentDelta, ReferenceList, UploadManager, new_unique_id
from .client.uploads import UploadStatus

DEFAULT_SERVER = "http://127.0.0.1:8000"
QUIT_COMMANDS = ("/quit", "/exit")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="video-chat", description="Chat with your videos through Memories.ai")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the proxy server")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    upload = sub.add_parser("upload", help="Upload MP4/MOV videos")
    upload.add_argument("paths", nargs="+", help="Video files to upload")
    upload.add_argument("--server", default=DEFAULT_SERVER, help="Base URL of the proxy server")
    upload.add_argument("--unique-id", default=None, help="Per-user identifier (generated when omitted)")

    chat = sub.add_parser("chat", help="Chat about uploaded videos")
    chat.add_argument("--video-no", action="append", required=True, dest="video_nos", help="Video number (repeatable)")
    chat.add_argument("--server", default=DEFAULT_SERVER, help="Base URL of the proxy server")
    chat.add_argument("--unique-id", default=None, help="Must match the id used for the uploads")
    return parser


async def run_upload(server: str, paths: list, unique_id: str) -> int:
    def show_progress(local_id: str, progress: float) -> None:
        print(f"\r{local_id}: {progress:5.1f}%", end="", file=sys.stderr, flush=True)

    async with httpx.AsyncClient(base_url=server, timeout=None) as http:
        manager = UploadManager(http, unique_id, on_progress=show_progress)
        manager.add(paths)
        for error in manager.errors:
            print(error, file=sys.stderr)
        manager.clear_errors()

        results = await manager.upload_all()
        print(file=sys.stderr)
        for entry in results:
            if entry.status is UploadStatus.SUCCESS:
                status = entry.video_status.value if entry.video_status else "unknown"
                print(f"{entry.name}: {entry.video_no} ({status})")
        for error in manager.errors:
            print(error, file=sys.stderr)

    print(f"unique id: {unique_id}")
    failed = any(entry.status is not UploadStatus.SUCCESS for entry in results)
    return 1 if failed or not results else 0


async def run_chat(server: str, video_nos: list, unique_id: str) -> int:
    async with httpx.AsyncClient(base_url=server, timeout=None) as http:
        chat = ChatInterface(http, unique_id=unique_id, video_nos=video_nos)
        print(chat.messages[0].content)
        loop = asyncio.get_running_loop()
        while True:
            try:
                text = await loop.run_in_executor(None, input, "> ")
            except EOFError:
                break
            if text.strip() in QUIT_COMMANDS:
                break
            try:
                async for event in chat.replies(text):
                    if isinstance(event, ContentDelta):
                        print(event.text, end="", flush=True)
                    elif isinstance(event, ReferenceList):
                        print("\n" + event.render(), flush=True)
                print()
            except ChatError:
                print(f"\n{chat.messages[-1].content}")
            if chat.error:
                print(f"[error] {chat.error}", file=sys.stderr)
                chat.dismiss_error()
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "serve":
        uvicorn.run("video_chat.main:app", host=args.host, port=args.port)
        return 0

    unique_id = args.unique_id or new_unique_id()
    if args.command == "upload":
        return asyncio.run(run_upload(args.server, args.paths, unique_id))
    return asyncio.run(run_chat(args.server, args.video_nos, unique_id))


if __name__ == "__main__":
    sys.exit(main())
