"""Run the URL-to-campaign pipeline from the command line.

Usage:
    python scripts/generate_campaign.py https://example.com/product --user-id me
    python scripts/generate_campaign.py URL --user-id me --project-id <uuid> --objective Awareness
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from uuid import UUID

# Add the parent directory to the path so we can import from app
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.config.logger import app_logger
from app.db.db import close_db, db_session, init_db
from app.services.campaign_pipeline import GenerationRequest, PipelineOrchestrator
from app.services.result_store import SQLResultStore
from app.services.tool_invoker import HttpToolInvoker


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate an ad campaign from a product URL.")
    parser.add_argument("url", help="Product page to analyse")
    parser.add_argument("--user-id", required=True, help="Owner of the project and campaign")
    parser.add_argument("--project-id", type=UUID, help="Existing project; a new one is created when omitted")
    parser.add_argument("--objective", help="Campaign objective (defaults to Conversions)")
    return parser.parse_args(argv)


async def generate(args: argparse.Namespace) -> int:
    await init_db()
    invoker = HttpToolInvoker()
    try:
        async with db_session() as session:
            store = SQLResultStore(session)

            if args.project_id:
                project = await store.get_project(args.project_id, args.user_id)
                if project is None:
                    print(f"Project {args.project_id} not found for user {args.user_id}")
                    return 1
            else:
                project = await store.create_project(args.user_id, f"CLI: {args.url}")
                print(f"Created project {project.id}")

            outcome = await PipelineOrchestrator(store, invoker).run(
                GenerationRequest(
                    user_id=args.user_id,
                    project_id=project.id,
                    url=args.url,
                    objective=args.objective,
                )
            )
    finally:
        await invoker.aclose()
        await close_db()

    if not outcome.ok:
        stage = outcome.failed_stage.value if outcome.failed_stage else "persistence"
        print(f"Generation failed at {stage}: {outcome.error.message}")
        print(f"Source {outcome.source_id} marked failed")
        return 1

    usage = outcome.usage
    print("=" * 50)
    print(f"Campaign: {outcome.campaign_id}")
    print(f"Source:   {outcome.source_id}")
    print(f"Tokens:   {usage.total_tokens} (est. ${usage.cost:.4f})")
    print("=" * 50)
    print(json.dumps(outcome.result.model_dump(mode="json"), indent=2))
    return 0


def main() -> None:
    args = parse_args()
    app_logger.info(f"CLI generation for {args.url}")
    sys.exit(asyncio.run(generate(args)))


if __name__ == "__main__":
    main()
