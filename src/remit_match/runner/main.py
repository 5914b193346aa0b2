"""
CLI main entry point.
"""

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional

from ..config import Config, create_default_config, load_config
from ..email_evidence import EmailEvidenceSearch, Summarizer
from ..errors import MissingInputError
from ..extraction import CompanyNameExtractor
from ..llm import LLMError, OllamaClient
from ..mailbox_client import GraphMailboxClient
from ..parsing import parse_payment_notes

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="remit-match",
        description="Match bank payment notes to historical postings and email evidence",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # parse command
    parse_parser = subparsers.add_parser("parse", help="Classify payment note lines")
    parse_parser.add_argument(
        "file",
        type=Path,
        nargs="?",
        help="File with payment notes (default: stdin)",
    )

    # company command
    company_parser = subparsers.add_parser("company", help="Extract the payer name")
    company_parser.add_argument(
        "file",
        type=Path,
        nargs="?",
        help="File with payment notes (default: stdin)",
    )

    # emails command
    emails_parser = subparsers.add_parser(
        "emails", help="Search the live mailbox for payment evidence"
    )
    emails_parser.add_argument(
        "--company",
        type=str,
        required=True,
        help="Payer name to search for",
    )
    emails_parser.add_argument(
        "--date",
        type=date.fromisoformat,
        required=True,
        help="Value date (YYYY-MM-DD)",
    )
    emails_parser.add_argument(
        "--amount",
        type=float,
        help="Payment amount",
    )
    emails_parser.add_argument(
        "--summarize",
        action="store_true",
        help="Summarize the top emails with the LLM",
    )

    # init-config command
    init_parser = subparsers.add_parser("init-config", help="Write a default config file")
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing config file",
    )

    return parser


def read_notes(file: Optional[Path]) -> str:
    """Read payment notes from a file, or stdin when no file is given."""
    if file is None:
        return sys.stdin.read()
    return file.read_text(encoding="utf-8")


def cmd_parse(file: Optional[Path]) -> int:
    """Print one JSON object per classified line."""
    notes = read_notes(file)
    for line in parse_payment_notes(notes):
        print(json.dumps(line.to_dict()))
    return 0


def cmd_company(config: Config, file: Optional[Path]) -> int:
    """Run the company-name chain on payment notes."""
    notes = read_notes(file)
    llm = OllamaClient(config.llm) if config.llm.enabled else None
    extractor = CompanyNameExtractor.default(
        llm, model=config.llm.model, llm_enabled=config.llm.enabled
    )

    try:
        result = extractor.extract(parse_payment_notes(notes), notes)
    except MissingInputError as e:
        print(f"❌ {e}")
        return 1
    finally:
        if llm is not None:
            llm.close()

    if result is None:
        print("❌ No company name found")
        return 1

    print(json.dumps(result.to_dict(), indent=2))
    return 0


def cmd_emails(
    config: Config,
    company: str,
    value_date: date,
    amount: Optional[float],
    summarize: bool,
) -> int:
    """Search the live mailbox and optionally summarize the evidence."""
    if not config.mailbox.is_configured:
        print("❌ Mailbox not configured (mailbox.mailbox / mailbox.token)")
        return 1

    print(f"📧 Searching emails for '{company}' around {value_date.isoformat()}...")
    with GraphMailboxClient(
        base_url=config.mailbox.graph_url,
        mailbox=config.mailbox.mailbox,
        token=config.mailbox.token,
        timeout=config.mailbox.timeout_seconds,
    ) as mailbox:
        search = EmailEvidenceSearch.from_config(
            config.email_search,
            mailbox=mailbox,
            subject_filter=config.mailbox.subject_filter,
        )
        try:
            emails = search.search(company, amount, value_date)
        except MissingInputError as e:
            print(f"❌ {e}")
            return 1

    output: dict = {"emails": [e.to_dict() for e in emails], "summary": None}

    if summarize and emails:
        if not config.llm.enabled:
            print("⚠️  LLM disabled, skipping summary")
        else:
            with OllamaClient(config.llm) as llm:
                summarizer = Summarizer(
                    llm,
                    default_model=config.llm.model,
                    email_limit=config.email_search.summary_email_limit,
                    body_chars=config.email_search.summary_body_chars,
                )
                summary = summarizer.summarize(emails, company, amount)
            if summary is not None:
                output["summary"] = summary.to_dict()

    print(json.dumps(output, indent=2))
    print(f"\n✓ Found {len(emails)} email(s)")
    return 0


def cmd_init_config(config_path: Path, force: bool) -> int:
    """Write a default configuration file."""
    if config_path.exists() and not force:
        print(f"❌ {config_path} already exists (use --force to overwrite)")
        return 1

    create_default_config(config_path)
    print(f"✓ Wrote default config to {config_path}")
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_cli()
    parsed = parser.parse_args(args)

    setup_logging(parsed.verbose)

    if not parsed.command:
        parser.print_help()
        return 1

    if parsed.command == "init-config":
        return cmd_init_config(parsed.config, parsed.force)
    if parsed.command == "parse":
        return cmd_parse(parsed.file)

    # Load config
    try:
        config = load_config(parsed.config)
        config.require_valid()
    except Exception as e:
        print(f"❌ Failed to load config: {e}")
        return 1

    # Route to command
    try:
        if parsed.command == "company":
            return cmd_company(config, parsed.file)
        elif parsed.command == "emails":
            return cmd_emails(
                config,
                company=parsed.company,
                value_date=parsed.date,
                amount=parsed.amount,
                summarize=parsed.summarize,
            )
    except LLMError as e:
        print(f"❌ LLM error: {e}")
        return 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
