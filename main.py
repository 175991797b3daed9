#!/usr/bin/env python3
"""
Invoice Extraction Pipeline - Main Entry Point.

Command-line interface and programmatic access to the extraction
pipeline.

Usage:
    Command Line:
        python main.py --input invoice.pdf
        python main.py --input scan.png --output result.json --no-remote
        python main.py --input invoice.pdf --compare

    Python:
        from main import run_extraction
        result = run_extraction("invoice.pdf")

Author: ML Engineering Team
Version: 1.0.0
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

# Import project modules
from config import ConfigurationManager
from invoice_pipeline.utils.logger import ROOT_LOGGER_NAME, setup_logger_from_config, get_logger
from invoice_pipeline.utils.helpers import ensure_directory
from invoice_pipeline.utils.exceptions import UnrecoverableInputError


def parse_arguments(argv: Optional[list] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        description="Invoice Extraction Pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    Extract to stdout:
        python main.py --input invoice.pdf

    Extract to a file, local extraction only:
        python main.py --input scan.png --output result.json --no-remote

    Compare remote and local extraction:
        python main.py --input invoice.pdf --compare
        """
    )

    # Input/Output arguments
    parser.add_argument(
        "--input", "-i",
        type=str,
        required=True,
        help="Invoice file (PDF, JPEG, PNG or TIFF)"
    )

    parser.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="Output JSON file (default: stdout)"
    )

    parser.add_argument(
        "--mime-type",
        type=str,
        default=None,
        help="Declared MIME type, used when the content cannot be sniffed"
    )

    # Processing options
    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to custom configuration file"
    )

    parser.add_argument(
        "--no-remote",
        action="store_true",
        help="Skip remote Document AI extraction"
    )

    parser.add_argument(
        "--compare",
        action="store_true",
        help="Run remote and local extraction and report both"
    )

    # Logging options
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Only log warnings and errors"
    )

    return parser.parse_args(argv)


def initialize_system(args: argparse.Namespace) -> ConfigurationManager:
    """
    Initialize the pipeline with configuration and logging.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Initialized configuration manager.
    """
    config = ConfigurationManager(args.config)
    logger = setup_logger_from_config()

    if args.debug:
        logging.getLogger(ROOT_LOGGER_NAME).setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger(ROOT_LOGGER_NAME).setLevel(logging.WARNING)

    logger.info("=" * 60)
    logger.info("INVOICE EXTRACTION PIPELINE")
    logger.info("=" * 60)
    logger.info(f"Version: {config.get('project.version', '1.0.0')}")
    logger.info(f"Input: {args.input}")
    logger.info(f"Output: {args.output or 'stdout'}")

    return config


def _log_progress(event: Dict[str, Any]) -> None:
    get_logger(__name__).info(f"[{event['progress']:3d}%] {event['stage']}: {event['message']}")


async def extract_async(
    input_path: str,
    mime_type: Optional[str] = None,
    use_remote: bool = True,
    compare: bool = False
) -> Dict[str, Any]:
    """
    Run the pipeline on one file.

    Returns:
        Output dictionary (extractedText, invoiceData, metrics, extractionMethods).

    Raises:
        UnrecoverableInputError: If the file cannot be read.
    """
    from invoice_pipeline.input_handler.document import SourceDocument
    from invoice_pipeline.pipeline.orchestrator import ExtractionOrchestrator

    orchestrator = ExtractionOrchestrator(use_remote=use_remote)
    document = await asyncio.to_thread(SourceDocument.from_path, input_path, mime_type)

    if compare:
        output = await orchestrator.compare(document, progress_sink=_log_progress)
    else:
        output = await orchestrator.extract(document, progress_sink=_log_progress)

    return output.to_dict()


def run_extraction(
    input_path: str,
    mime_type: Optional[str] = None,
    config_path: Optional[str] = None,
    use_remote: bool = True,
    compare: bool = False
) -> Dict[str, Any]:
    """
    Run the invoice extraction pipeline on one file.

    This is the main programmatic entry point.

    Args:
        input_path: Path to the invoice file.
        mime_type: Declared MIME type (optional).
        config_path: Optional custom configuration file path.
        use_remote: Try remote extraction first when configured.
        compare: Run both methods and attach a comparison.

    Returns:
        Output dictionary.

    Example:
        >>> result = run_extraction("invoice.pdf", use_remote=False)
        >>> print(result["invoiceData"]["invoiceNumber"])
    """
    from invoice_pipeline.ocr_engine.session import OcrSession

    ConfigurationManager(config_path)
    try:
        return asyncio.run(extract_async(input_path, mime_type, use_remote, compare))
    finally:
        OcrSession.get_session().close()


def write_output(result: Dict[str, Any], output_path: Optional[str]) -> None:
    """Write the result as JSON to a file, or to stdout."""
    payload = json.dumps(result, indent=2, ensure_ascii=False)
    if output_path is None:
        print(payload)
        return

    path = Path(output_path)
    ensure_directory(path.parent)
    path.write_text(payload, encoding='utf-8')
    get_logger(__name__).info(f"Result written to {path}")


def main(argv: Optional[list] = None) -> int:
    """
    Main function - entry point for command-line execution.

    Returns:
        Exit code (0 for success, 1 for unreadable input, 130 on interrupt).
    """
    try:
        args = parse_arguments(argv)
        initialize_system(args)
        logger = get_logger(__name__)

        result = run_extraction(
            input_path=args.input,
            mime_type=args.mime_type,
            config_path=args.config,
            use_remote=not args.no_remote,
            compare=args.compare
        )
        write_output(result, args.output)

        logger.info("=" * 60)
        logger.info(
            f"Extraction complete via {', '.join(result['extractionMethods']) or 'no method'} "
            f"(consensus {result['metrics']['consensusScore']})"
        )
        logger.info("=" * 60)

        return 0

    except UnrecoverableInputError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
