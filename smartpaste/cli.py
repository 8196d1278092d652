"""
Smart-Paste CLI commands.

Provides a command-line interface for parsing pasted messages,
reviewing learned templates and viewing template statistics.
"""

import asyncio
import sys
from typing import Optional

import structlog

from smartpaste.core.config import get_settings
from smartpaste.core.logging import configure_logging
from smartpaste.engine.engine import SmartPasteEngine
from smartpaste.engine.models import ParseResult
from smartpaste.templates.models import Template, TemplateStats
from smartpaste.templates.store import TemplateNotFoundError

logger = structlog.get_logger()


def build_engine() -> SmartPasteEngine:
    """Create an engine on the configured store."""
    settings = get_settings()
    configure_logging(settings.ENV, debug=False)
    return SmartPasteEngine.from_settings(settings)


def print_parse_result(result: ParseResult):
    """Pretty print a parse result."""
    print("\n=== Smart-Paste Summary ===\n")
    print(f"Origin: {result.origin.value}")
    print(f"Confidence: {result.confidence:.2f} ({result.parsing_status})")
    print(f"Needs Review: {'yes' if result.needs_review else 'no'}")
    if result.matched_template_id:
        print(f"Template: {result.matched_template_id} ({result.match_kind})")
    print(f"Templates Matched: {result.matched_count}/{result.total_templates_considered}")
    print(f"Structure: {result.structure}")

    print("\n--- Fields ---")
    draft = result.draft.model_dump()
    for name, value in draft.items():
        source = result.field_sources.get(name)
        print(f"{name:<12} {value or '-':<24} [{source.value if source else '-'}]")

    if result.notes:
        print("\n--- Notes ---")
        for note in result.notes:
            print(f"- {note}")
    if result.warnings:
        print("\n--- Warnings ---")
        for warning in result.warnings:
            print(f"! {warning}")
    print()


def print_template(template: Template):
    """Print one template line."""
    meta = template.meta
    print(
        f"{template.id}  {meta.status.value:<10} "
        f"used {meta.usage_count}, ok {meta.success_count}, "
        f"confidence {meta.confidence_score:.2f}"
    )
    print(f"    {template.template}")


def print_stats(stats: TemplateStats):
    """Pretty print template statistics."""
    print("\n=== Template Statistics ===\n")
    print(f"Total Templates: {stats.total_templates}")
    for status, count in sorted(stats.by_status.items()):
        print(f"  {status}: {count}")
    print(f"Total Usage: {stats.total_usage}")
    print(f"Success Ratio: {stats.overall_success_ratio:.1%}")
    print(f"Avg Confidence: {stats.average_confidence:.2f}")
    print(f"Stale Templates: {stats.stale_templates}")

    if stats.top_fields:
        print("\n--- Fields ---")
        for name, count in stats.top_fields.items():
            print(f"{name}: {count}")

    if stats.most_used:
        print("\n--- Most Used ---")
        for entry in stats.most_used:
            print(f"{entry['id']}: {entry['usage_count']} uses ({entry['status']})")
    print()


def parse_command(engine: SmartPasteEngine, text: str, sender: Optional[str] = None):
    """Parse one message and print the draft."""
    result = asyncio.run(engine.parse_async(text, sender))
    print_parse_result(result)
    return 0


def review_command(engine: SmartPasteEngine):
    """List templates awaiting review."""
    templates = engine.list_for_review()
    if not templates:
        print("No templates awaiting review.")
        return 0
    print(f"\n=== {len(templates)} template(s) awaiting review ===\n")
    for template in templates:
        print_template(template)
    print()
    return 0


def approve_command(engine: SmartPasteEngine, template_id: str):
    """Approve or reinstate a template."""
    try:
        template = engine.approve(template_id)
    except TemplateNotFoundError as e:
        print(str(e))
        return 1
    print(f"Approved {template.id} (status: {template.meta.status.value})")
    return 0


def deprecate_command(engine: SmartPasteEngine, template_id: str, reason: str):
    """Reject a template."""
    try:
        template = engine.deprecate(template_id, reason)
    except TemplateNotFoundError as e:
        print(str(e))
        return 1
    print(f"Deprecated {template.id}: {reason}")
    return 0


def stats_command(engine: SmartPasteEngine):
    """Show template statistics."""
    print_stats(engine.stats())
    return 0


def print_usage():
    print("Usage: python -m smartpaste.cli <command> [options]")
    print("\nCommands:")
    print("  parse <text> [sender]       Parse a pasted message")
    print("  review                      List templates awaiting review")
    print("  approve <id>                Approve or reinstate a template")
    print("  deprecate <id> <reason>     Reject a template")
    print("  stats                       Show template statistics")
    print("\nExamples:")
    print('  python -m smartpaste.cli parse "Spent 100 SAR at Store" STCPAY')
    print("  python -m smartpaste.cli review")
    print("  python -m smartpaste.cli deprecate 1a2b3c4d wrong_vendor")


def main():
    """Main CLI entry point."""
    if len(sys.argv) < 2:
        print_usage()
        return 1

    command = sys.argv[1]
    args = sys.argv[2:]
    required = {"parse": 1, "review": 0, "approve": 1, "deprecate": 2, "stats": 0}

    if command not in required:
        print(f"Unknown command: {command}")
        return 1
    if len(args) < required[command]:
        print_usage()
        return 1

    try:
        engine = build_engine()
        if command == "parse":
            return parse_command(engine, args[0], args[1] if len(args) > 1 else None)
        elif command == "review":
            return review_command(engine)
        elif command == "approve":
            return approve_command(engine, args[0])
        elif command == "deprecate":
            return deprecate_command(engine, args[0], " ".join(args[1:]))
        else:
            return stats_command(engine)
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 130
    except Exception as e:
        print(f"Error: {str(e)}")
        logger.exception("cli_error", command=command)
        return 1


if __name__ == "__main__":
    sys.exit(main())
