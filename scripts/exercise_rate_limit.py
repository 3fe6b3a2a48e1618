#!/usr/bin/env python3
"""
Send a burst of hook calls to a running rate limit service and print each outcome.

Useful against a local stack to watch the window fill up and drain:

    python scripts/exercise_rate_limit.py --requests 15 --delay 0.5
"""

import argparse
import asyncio
import json
import os
import sys
import time
from typing import Dict, List

import httpx


def _hook_body(operation_name: str, role: str, user_id: str) -> Dict:
    return {
        "rawRequest": {
            "query": "query { users { id name } }",
            "variables": {},
            "operationName": operation_name,
        },
        "session": {"role": role, "variables": {"user.id": user_id}},
    }


async def exercise(
    *,
    url: str,
    auth_token: str,
    requests: int,
    delay: float,
    user_id: str,
    client_id: str,
    role: str,
) -> List[Dict]:
    """Send ``requests`` hook calls ``delay`` seconds apart and collect the results."""
    headers = {
        "hasura-m-auth": auth_token,
        "x-user-id": user_id,
        "x-client-id": client_id,
        "x-hasura-role": role,
    }
    results = []

    async with httpx.AsyncClient(timeout=5.0) as client:
        for i in range(1, requests + 1):
            response = await client.post(url, json=_hook_body("GetUsers", role, user_id), headers=headers)
            result = {
                "request": i,
                "status_code": response.status_code,
                "body": response.json() if response.content else None,
                "timestamp": time.strftime("%H:%M:%S"),
            }
            results.append(result)
            print(json.dumps(result))
            if i < requests:
                await asyncio.sleep(delay)

    return results


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Exercise the rate limit hook with a burst of requests.")
    parser.add_argument("--url", default=os.getenv("RATE_LIMIT_HOOK_URL", "http://localhost:3000/rate-limit"), help="Hook endpoint URL")
    parser.add_argument("--auth-token", default=os.getenv("RATE_LIMIT_HOOK_TOKEN", "your-auth-token"), help="Value for the hasura-m-auth header")
    parser.add_argument("--requests", type=int, default=15, help="Number of requests to send")
    parser.add_argument("--delay", type=float, default=0.5, help="Seconds between requests")
    parser.add_argument("--user", default="user123", help="x-user-id header and user.id session variable")
    parser.add_argument("--client", default="client456", help="x-client-id header")
    parser.add_argument("--role", default="user", help="Session role")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    try:
        results = asyncio.run(
            exercise(
                url=args.url,
                auth_token=args.auth_token,
                requests=args.requests,
                delay=args.delay,
                user_id=args.user,
                client_id=args.client,
                role=args.role,
            )
        )
    except KeyboardInterrupt:
        return 130
    except httpx.HTTPError as exc:
        print(f"[rate-limit] request failed: {exc}", file=sys.stderr)
        return 1

    allowed = sum(1 for result in results if result["status_code"] == 204)
    print(f"[rate-limit] {allowed}/{len(results)} requests admitted")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
