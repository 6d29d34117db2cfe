"""
Weave contract declarations from a Python file or a JSON declaration table.

Usage:
    contractweave wallet.py
    contractweave wallet.py -o build/contracts --json build/report.json
    contractweave tables/wallet.json --declarations --stdout
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from contractweave.api_models import load_declarations
from contractweave.core.config import Settings
from contractweave.core.models import DeclarationTable
from contractweave.core.weaver import WeaveResult, weave
from contractweave.generators.source import render_module
from contractweave.output.json_formatter import WeaveReportFormatter
from contractweave.parser import ContractSourceParser
from contractweave.utils.files import save_generated

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_REJECTED = 1
EXIT_MISSING_INPUT = 2


def load_table(path: Path, declarations: bool) -> DeclarationTable:
    if declarations or path.suffix == ".json":
        return load_declarations(path)
    return ContractSourceParser().parse_file(str(path))


def print_summary(file_name: str, result: WeaveResult, output: Optional[str]) -> None:
    """Print formatted summary"""
    print("\n" + "=" * 80)
    print(f"WEAVE SUMMARY: {file_name}")
    print("=" * 80)

    if not result.descriptors and not result.errors:
        print("⚠️  No contract declarations found")
        return

    print(f"\n✅ Wrappers generated: {len(result.descriptors)}")
    print(f"❌ Declarations rejected: {len(result.errors)}")
    for descriptor in result.descriptors:
        print(f"   {descriptor.qualname}  <-  {descriptor.internal_name}")

    if result.errors:
        print("\n" + "-" * 80)
        print("ERRORS")
        print("-" * 80)
        for error in result.errors:
            print(f"\n{error}")

    if output:
        print(f"\n📄 Generated: {output}")
    print("\n" + "=" * 80)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="contractweave",
        description="Generate contract-checked public entry points",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Weave the @contract classes of a module
    contractweave examples/wallet.py

    # Weave a JSON declaration table and print the generated source
    contractweave tables/wallet.json --declarations --stdout

    # Output directory from the environment (or a .env file)
    export CONTRACTWEAVE_OUTPUT_DIR=build/contracts
    contractweave examples/wallet.py --json build/report.json
        """
    )
    parser.add_argument("file", help="Python file or JSON declaration table")
    parser.add_argument("--declarations", action="store_true", help="Treat FILE as a JSON declaration table")
    parser.add_argument("-o", "--output-dir", help="Directory for the generated module")
    parser.add_argument("--json", dest="report", help="Write a JSON report to this path")
    parser.add_argument("--stdout", action="store_true", help="Print the generated module instead of saving it")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    settings = Settings.from_env()
    if args.verbose:
        settings.log_level = "DEBUG"
    settings.configure_logging()

    path = Path(args.file)
    if not path.exists():
        print(f"❌ Error: File not found: {args.file}")
        return EXIT_MISSING_INPUT

    try:
        table = load_table(path, args.declarations)
    except (SyntaxError, ValidationError) as e:
        print(f"❌ Error: could not read declarations from {args.file}: {e}")
        return EXIT_REJECTED

    result = weave(table)
    source = render_module(result.descriptors, source_module=path.stem)

    output = None
    if args.stdout:
        print(source)
    else:
        output = save_generated(source, path.stem, args.output_dir or settings.output_dir)
        logger.info(f"[CLI] wrote {output}")

    if args.report:
        formatter = WeaveReportFormatter(str(path), path.read_text(encoding="utf-8"))
        formatter.add_result(result)
        if output:
            formatter.add_artifact(output)
        formatter.save_to_file(args.report)

    print_summary(args.file, result, output)
    return EXIT_OK if result.ok else EXIT_REJECTED


if __name__ == "__main__":
    sys.exit(main())
