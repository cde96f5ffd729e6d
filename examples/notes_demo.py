"""
Example program previewing how releasebeacon announces a release, without Slack.
"""

import argparse
from datetime import datetime, timezone
from pathlib import Path

from releasebeacon.analyzers.breaking_changes import analyze_breaking_changes
from releasebeacon.analyzers.config_changes import analyze_config_changes
from releasebeacon.analyzers.e2e_workflows import analyze_e2e_workflows
from releasebeacon.formatting.canvas import render_document_snapshot
from releasebeacon.formatting.message import classify, render_chat_message, render_header_line
from releasebeacon.models.release import ReleaseEntry, build_release_event, format_release_date


def main():
    parser = argparse.ArgumentParser(description="Preview the Slack notification and canvas for release notes")
    parser.add_argument("notes_file", help="Markdown file holding the release notes")
    parser.add_argument("--version", default="v0.0.0-preview", help="Release version to announce")
    parser.add_argument("--repository", default="", help="Repository in owner/repo form")
    args = parser.parse_args()

    notes_path = Path(args.notes_file)
    if not notes_path.exists():
        print(f"Error: {notes_path} does not exist")
        return 1

    event = build_release_event(
        version=args.version, repository_name=args.repository, raw_notes=notes_path.read_text(encoding="utf-8")
    )

    breaking = analyze_breaking_changes(event.raw_notes)
    config = analyze_config_changes(event.raw_notes)
    e2e = analyze_e2e_workflows(event.raw_notes)
    classification = classify(breaking.has_breaking_changes, config.has_config_changes, e2e.has_e2e_tests)

    message = render_chat_message(event, classification, breaking, config, e2e)
    print(f"Classification: {classification.value} (color {message.color})")
    print("=" * 80)
    print(render_header_line(message, event.repository_name))
    print()
    print(message.body)
    print("=" * 80)

    entry = ReleaseEntry(
        version=event.version,
        release_date=format_release_date(datetime.now(timezone.utc)),
        change_type=classification,
        has_breaking=breaking.has_breaking_changes,
        has_config=config.has_config_changes,
        has_e2e=e2e.has_e2e_tests,
        repository_name=event.repository_name or None,
    )
    print(render_document_snapshot(event.repository_name or "preview", [entry]))
    return 0


if __name__ == "__main__":
    exit(main())
