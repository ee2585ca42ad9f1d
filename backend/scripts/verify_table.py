import argparse
import json
from dataclasses import asdict
from pathlib import Path

from loguru import logger

from app.core.config import get_settings
from ingestion.client import PokerNowClient, extract_table_id
from ingestion.verifier import TournamentVerifier


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Rebuild final standings for a PokerNow table")
    parser.add_argument("table", help="Table id or PokerNow game URL")
    parser.add_argument(
        "--csv",
        type=Path,
        default=None,
        help="Verify from a downloaded full-log CSV export instead of the live API",
    )
    parser.add_argument(
        "--summary-path",
        type=Path,
        default=None,
        help="Optional path where the JSON result will be written",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    table_id = extract_table_id(args.table) or args.table

    with PokerNowClient(settings=get_settings()) as client:
        verifier = TournamentVerifier(client)
        if args.csv:
            result = verifier.verify_csv(table_id, args.csv.read_text(encoding="utf-8"))
        else:
            result = verifier.verify_table(table_id)

    if not result.verified:
        logger.error("Verification failed for {}: {}", table_id, result.verification_error)
    else:
        logger.info(
            "Table {} verified over {} hands; winner={}",
            table_id,
            result.total_hands,
            result.winner,
        )

    payload = json.dumps(asdict(result), default=str, indent=2)
    if args.summary_path:
        args.summary_path.parent.mkdir(parents=True, exist_ok=True)
        args.summary_path.write_text(payload)
        logger.info("Verification result written to {}", args.summary_path)
    else:
        print(payload)


if __name__ == "__main__":
    main()
