"""命令行入口。

    python -m chat_core serve [--host HOST] [--port PORT]
    python -m chat_core chat [--provider P] [--model M] [--url URL | --local]

chat 模式是一个按行交互的简易前端，支持以下命令：
/new、/list、/select <id>、/title <text>、/provider <name>、/model <name>、/quit
"""

import argparse
import sys
from typing import List, Optional

from chat_core.conversation import ConversationController, TitleGenerator
from chat_core.domain.exceptions import BusinessError
from chat_core.domain.session import Session
from chat_core.gateway.client import GatewayClient, HttpGatewayClient, LocalGatewayClient
from chat_core.infrastructure.storage.json_store import JsonFileKeyValueStore
from chat_core.infrastructure.storage.session_store import SessionStore


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chat_core", description="Multi-provider chat gateway")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="run the HTTP gateway")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    chat = sub.add_parser("chat", help="interactive chat in the terminal")
    chat.add_argument("--provider", default=None)
    chat.add_argument("--model", default=None)
    chat.add_argument("--url", default=None, help="gateway URL (default: settings.gateway_url)")
    chat.add_argument("--local", action="store_true", help="call providers in-process instead of over HTTP")
    return parser


def serve(host: str, port: int) -> None:
    import uvicorn

    from chat_core.api.app import create_app

    uvicorn.run(create_app(), host=host, port=port)


class TerminalView:
    """把流式更新直接写到终端：只输出新增的尾部文本。"""

    def __init__(self, out=sys.stdout):
        self._out = out
        self._printed = 0
        self._last_count = 0

    def __call__(self, session: Session) -> None:
        if not session.messages:
            return
        last = session.messages[-1]
        if len(session.messages) != self._last_count:
            self._last_count = len(session.messages)
            self._printed = 0
            if last.role != "assistant":
                return
            self._out.write("\nassistant> ")
        if last.role != "assistant":
            return
        self._out.write(last.content[self._printed:])
        self._printed = len(last.content)
        self._out.flush()


def _describe(sessions: List[Session], current_id: Optional[str]) -> str:
    lines = []
    for s in sessions:
        marker = "*" if s.id == current_id else " "
        lines.append(f"{marker} {s.id}  {s.title}  [{s.provider}/{s.model}]  ({len(s.messages)} messages)")
    return "\n".join(lines)


def run_chat(args: argparse.Namespace) -> None:
    store = SessionStore(JsonFileKeyValueStore())
    gateway: GatewayClient = LocalGatewayClient() if args.local else HttpGatewayClient(url=args.url)
    view = TerminalView()
    controller = ConversationController(store, gateway, TitleGenerator(gateway), on_change=view)
    if args.provider:
        controller.change_provider(args.provider)
    if args.model:
        controller.change_model(args.model)

    print(_describe(store.list(), store.current_id))
    while True:
        try:
            line = input("\nyou> ")
        except (EOFError, KeyboardInterrupt):
            break
        command, _, rest = line.strip().partition(" ")
        try:
            if command == "/quit":
                break
            elif command == "/new":
                controller.new_chat()
                print(_describe(store.list(), store.current_id))
            elif command == "/list":
                print(_describe(store.list(), store.current_id))
            elif command == "/select":
                session = controller.select_session(rest.strip())
                for m in session.messages:
                    print(f"{m.role}> {m.content}")
            elif command == "/title":
                controller.rename_session(store.current_id, rest)
            elif command == "/provider":
                controller.change_provider(rest.strip())
            elif command == "/model":
                controller.change_model(rest.strip())
            else:
                controller.send_message(line)
        except BusinessError as e:
            print(f"error: {e.message}")


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    if args.command == "serve":
        serve(args.host, args.port)
    else:
        run_chat(args)


if __name__ == "__main__":
    main()
