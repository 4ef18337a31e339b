"""CLI - manage topics, trigger webhooks, edit config and serve the API."""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

import yaml

from hookcast.config import load_config, settings_path
from hookcast.errors import HookcastError
from hookcast.hub import WebhookHub

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _load_settings(root: Path) -> dict:
    path = settings_path(root)
    if not path.exists():
        return {}
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _save_settings(root: Path, data: dict) -> None:
    path = settings_path(root)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)


def _parse_value(value: str):
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    return value


def cmd_config_get(root: Path, key: str) -> None:
    """Print a config value (dotted key). Unset keys fall back to defaults."""
    v = load_config(root).model_dump()
    for k in key.split("."):
        if isinstance(v, dict) and k in v:
            v = v[k]
        else:
            v = ""
            break
    print(v)


def cmd_config_set(root: Path, key: str, value: str) -> None:
    settings = _load_settings(root)
    keys = key.split(".")
    d = settings
    for k in keys[:-1]:
        d = d.setdefault(k, {})
    d[keys[-1]] = _parse_value(value)
    _save_settings(root, settings)
    print(f"Set {key} = {value}")


def _persist(hub: WebhookHub) -> None:
    if hub.store is None:
        print("Note: store.backend is 'memory', changes are not saved. Run: hookcast config set store.backend file")
        return
    hub.persist()


def cmd_topics_list(root: Path) -> None:
    hub = WebhookHub(root)
    webhooks = hub.registry.get_all()
    if not webhooks:
        print("No topics registered")
        return
    for topic, urls in webhooks.items():
        print(f"{topic} ({len(urls)})")
        for url in urls:
            print(f"  {url}")


def cmd_topics_add(root: Path, topic: str, urls: list[str]) -> None:
    hub = WebhookHub(root)
    added = hub.registry.add_all(topic, urls)
    _persist(hub)
    print(f"Added {added} endpoint(s) to {topic}")


def cmd_topics_remove(root: Path, topic: str, urls: list[str]) -> None:
    """Remove endpoints from a topic, or the whole topic when no URLs are given."""
    hub = WebhookHub(root)
    if urls:
        removed = hub.registry.remove_all_endpoints(topic, urls)
        print(f"Removed {removed} endpoint(s) from {topic}")
    else:
        hub.registry.remove_topic(topic)
        print(f"Removed topic {topic}")
    _persist(hub)


def _parse_headers(values: list[str]) -> list[tuple[str, str]]:
    headers = []
    for h in values:
        name, sep, value = h.partition(":")
        if not sep or not name.strip():
            raise ValueError(f"Header must look like Name:Value, got {h!r}")
        headers.append((name.strip(), value.strip()))
    return headers


async def _trigger(root: Path, topic: str, body, headers: list[tuple[str, str]]) -> int:
    failures = 0
    async with WebhookHub(root) as hub:
        handle = hub.trigger(topic, body, headers)
        async for record in handle:
            status = record.status_code if record.status_code is not None else "-"
            if record.ok:
                print(f"OK    {status}  {record.endpoint}")
            else:
                failures += 1
                print(f"FAIL  {status}  {record.endpoint}  {record.error.reason}")
    return failures


def cmd_trigger(root: Path, topic: str, data: str | None, header: list[str]) -> int:
    body = json.loads(data) if data else None
    return asyncio.run(_trigger(root, topic, body, _parse_headers(header)))


def cmd_serve(root: Path) -> None:
    """Run the management API with uvicorn."""
    import uvicorn
    from hookcast.api.app import create_app
    from hookcast.api.deps import build_hub

    hub = build_hub(root)
    uvicorn.run(create_app(hub), host=hub.settings.api.host, port=hub.settings.api.port)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hookcast", description="Webhook registry and dispatcher")
    parser.add_argument("--root", "-r", default=None, help="Project root holding config/ (default: cwd)")
    sub = parser.add_subparsers(dest="cmd")

    cfg = sub.add_parser("config", help="Get/set config")
    cfg.add_argument("action", choices=["get", "set"])
    cfg.add_argument("key")
    cfg.add_argument("value", nargs="*", default=[])

    topics = sub.add_parser("topics", help="Manage topics")
    tsub = topics.add_subparsers(dest="action")
    tsub.add_parser("list", help="List topics and endpoints")
    add = tsub.add_parser("add", help="Add endpoints to a topic")
    add.add_argument("topic")
    add.add_argument("urls", nargs="+")
    rm = tsub.add_parser("remove", help="Remove endpoints, or the topic if none given")
    rm.add_argument("topic")
    rm.add_argument("urls", nargs="*", default=[])

    trig = sub.add_parser("trigger", help="POST to every endpoint of a topic")
    trig.add_argument("topic")
    trig.add_argument("--data", "-d", default=None, help="JSON request body")
    trig.add_argument("--header", "-H", action="append", default=[], help="Name:Value (repeatable)")

    sub.add_parser("serve", help="Run the management API")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    root = Path(args.root) if args.root else Path.cwd()

    level = load_config(root).log_level.upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)

    try:
        if args.cmd == "config":
            if args.action == "get":
                cmd_config_get(root, args.key)
            else:
                val = " ".join(args.value) if args.value else ""
                if not val:
                    print("config set requires a value")
                    return 1
                cmd_config_set(root, args.key, val)
        elif args.cmd == "topics":
            if args.action == "add":
                cmd_topics_add(root, args.topic, args.urls)
            elif args.action == "remove":
                cmd_topics_remove(root, args.topic, args.urls)
            else:
                cmd_topics_list(root)
        elif args.cmd == "trigger":
            return 1 if cmd_trigger(root, args.topic, args.data, args.header) else 0
        elif args.cmd == "serve":
            cmd_serve(root)
        else:
            parser.print_help()
    except (HookcastError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
