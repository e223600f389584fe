import asyncio
import argparse
import logging
import os
import sys

from .browser import PlaywrightDriver
from .config import ExplorerConfig, ServerConfig
from .errors import WaggenError
from .explorer import Explorer
from .interactive import InteractiveExplorer
from .serializer import generate_mermaid, generate_summary, load_graph_data, save_graph, write_graphml
from .session import load_session


async def _explore(config: ExplorerConfig) -> None:
    async with PlaywrightDriver(config) as driver:
        graph = await Explorer(config, driver).explore()
    data = save_graph(graph, config.output_path)
    print(generate_summary(data))

    base, _ = os.path.splitext(config.output_path)
    with open(base + ".mermaid.md", "w", encoding="utf-8") as fh:
        fh.write(f"# State Graph Visualization\n\n```mermaid\n{generate_mermaid(data)}\n```\n")
    write_graphml(graph, base + ".graphml")
    print(f"Mermaid diagram saved to: {base}.mermaid.md")


async def _interactive(config: ExplorerConfig, server_config: ServerConfig) -> None:
    from .server import serve

    explorer = InteractiveExplorer(config, PlaywrightDriver(config))
    try:
        if server_config.session_file and os.path.exists(server_config.session_file):
            logging.getLogger(__name__).info("Loading session from: %s", server_config.session_file)
            await explorer.from_session(load_session(server_config.session_file))
        else:
            await explorer.init()
        await serve(explorer, server_config)
        explorer.refresh_metadata()
        save_graph(explorer.graph, server_config.output_path)
    finally:
        await explorer.close()


def main() -> None:
    parser = argparse.ArgumentParser(prog="waggen", description="Web application state graph generator")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    explore = sub.add_parser("explore", help="Explore an application and write its state graph")
    explore.add_argument("--url", help="URL of the web application to explore")
    explore.add_argument("--output", help="Output path for the state graph JSON")
    explore.add_argument("--max-states", type=int, help="Maximum number of states to discover")
    explore.add_argument("--max-depth", type=int, help="Maximum exploration depth")
    explore.add_argument("--headed", action="store_true", help="Show the browser window")
    explore.add_argument("--timeout", type=int, help="Per-action timeout in milliseconds")
    explore.add_argument(
        "--restore", choices=["replay", "reset"], help="How to return to a source state before each action"
    )

    summary = sub.add_parser("summary", help="Print a summary of a state graph file")
    summary.add_argument("--file", required=True)

    mermaid = sub.add_parser("mermaid", help="Print a Mermaid diagram of a state graph file")
    mermaid.add_argument("--file", required=True)

    interactive = sub.add_parser("interactive", help="Explore step by step from a live UI")
    interactive.add_argument("--url", help="URL of the web application to explore")
    interactive.add_argument("--port", type=int, help="Port for the live server")
    interactive.add_argument("--session", help="Session file to resume from and save to")
    interactive.add_argument("--output", help="Where to write the graph on exit")

    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        if args.command == "explore":
            config = ExplorerConfig.from_env(
                url=args.url,
                output_path=args.output,
                max_states=args.max_states,
                max_depth=args.max_depth,
                headless=False if args.headed else None,
                timeout_ms=args.timeout,
                restore_strategy=args.restore,
            )
            asyncio.run(_explore(config))
        elif args.command == "summary":
            print(generate_summary(load_graph_data(args.file)))
        elif args.command == "mermaid":
            print(generate_mermaid(load_graph_data(args.file)))
        elif args.command == "interactive":
            config = ExplorerConfig.from_env(url=args.url, headless=False)
            server_config = ServerConfig.from_env(
                port=args.port, session_file=args.session, output_path=args.output
            )
            asyncio.run(_interactive(config, server_config))
    except WaggenError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
