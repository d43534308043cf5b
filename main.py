"""URLSift - structured extraction from URLs

Simple CLI for running a single extract request without the HTTP server.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from pydantic import ValidationError

from app.api.deps import BYPASS_TEAM_ID
from app.config import settings
from app.extract.interfaces import AuthContext
from app.extract.runtime import ExtractRuntime
from app.models.schemas import ExtractRequest


async def run_extract(request: ExtractRequest) -> int:
    """Run one extract request and print the response JSON."""
    runtime = ExtractRuntime()
    await runtime.start()
    try:
        outcome = await runtime.pipeline.run(
            request, AuthContext(team_id=BYPASS_TEAM_ID, plan=settings.self_hosted_plan)
        )
    finally:
        await runtime.close()

    print(json.dumps(outcome.response.to_json(), indent=2, ensure_ascii=False))
    return 0 if outcome.status_code == 200 else 1


def main():
    parser = argparse.ArgumentParser(description="URLSift structured extraction")
    parser.add_argument(
        "--url", "-u", action="append", required=True,
        help="URL or site pattern (example.com/*); repeat for several",
    )
    parser.add_argument("--prompt", "-p", help="What to extract")
    parser.add_argument("--schema", "-s", type=Path, help="Path to a JSON schema file")
    parser.add_argument("--system-prompt", help="Prefix for the extraction system prompt")
    parser.add_argument(
        "--allow-external-links", action="store_true",
        help="Follow links outside the given domains",
    )
    parser.add_argument("--timeout", type=int, help="Request timeout in milliseconds")

    args = parser.parse_args()

    payload = {
        "urls": args.url,
        "prompt": args.prompt,
        "systemPrompt": args.system_prompt,
        "allowExternalLinks": args.allow_external_links,
        "timeout": args.timeout,
        "origin": "cli",
    }
    if args.schema:
        payload["schema"] = json.loads(args.schema.read_text(encoding="utf-8"))

    try:
        request = ExtractRequest.model_validate(payload)
    except ValidationError as exc:
        print(f"[!] Invalid request: {exc}", file=sys.stderr)
        sys.exit(2)

    sys.exit(asyncio.run(run_extract(request)))


if __name__ == "__main__":
    main()
