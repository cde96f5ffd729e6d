#!/usr/bin/env python3
"""
examples/discovery_demo.py

Runs the canvas discovery ladder against a real Slack workspace and reports
which strategy finds the releases canvas of a channel. Nothing is written.
Needs SLACK_BOT_TOKEN in the environment.
"""

import argparse
import asyncio
import os
import sys

from dotenv import load_dotenv

from releasebeacon.reconciler.discovery import LADDERS, Discoverer, DiscoveryContext, build_discovery_ladder
from releasebeacon.slack.client import SlackClient, SlackDocumentStore
from releasebeacon.stores.state_store import scope_key


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Demonstrate releasebeacon's canvas discovery")
    parser.add_argument("channel", type=str, help="Channel id, #name or bare name")
    parser.add_argument("--repository", type=str, help="Look for this repository's canvas instead of the channel canvas")
    parser.add_argument("--workspace", action="store_true", help="Also search canvases across the workspace")
    parser.add_argument("--delay", type=float, default=2.0, help="Delay before re-reading channel properties")
    return parser.parse_args()


async def run(args) -> int:
    documents = SlackDocumentStore(SlackClient(token=os.environ["SLACK_BOT_TOKEN"]))

    channel_id = await documents.resolve_channel(args.channel)
    if not channel_id:
        print(f"Channel {args.channel} could not be resolved", file=sys.stderr)
        return 1

    scope = "repository" if args.repository else "channel"
    ladder = build_discovery_ladder(
        documents, names=LADDERS[scope], retry_delay=args.delay, include_workspace=args.workspace
    )
    print(f"Channel {args.channel} -> {channel_id}")
    print("Ladder: " + " -> ".join(f"{s.name} (cost {s.cost}, risk {s.false_negative_risk})" for s in ladder))

    context = DiscoveryContext(
        channel_id=channel_id, scope_key=scope_key(channel_id, args.repository), repository_name=args.repository
    )
    hit = await Discoverer(ladder).discover(context)
    if hit:
        print(f"Found canvas {hit.document_id} via {hit.strategy}")
    else:
        print("No releases canvas found; the next release would create one")
    return 0


def main():
    """Run the discovery demo."""
    load_dotenv()
    if not os.getenv("SLACK_BOT_TOKEN"):
        print("SLACK_BOT_TOKEN environment variable is not set", file=sys.stderr)
        return 1
    return asyncio.run(run(parse_args()))


if __name__ == "__main__":
    sys.exit(main())
