"""
run_analysis.py: end-to-end smoke run against a local server

Runs the whole flow over HTTP in one go:
  1. Health check and OpenAI key status
  2. Brand settings
  3. Save a handful of prompts under one topic and start the analysis
  4. Poll progress until the run completes, fails or is cancelled
  5. Print metrics, competitors and sources

Usage:
    uvicorn app.main:app --port 8000 &
    python run_analysis.py --brand Acme --url https://acme.io
"""

import argparse
import asyncio
import json
import logging
import sys
import time

import httpx

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s: %(message)s",
)
logger = logging.getLogger("analysis_smoke")

BASE = "http://localhost:8000/api/v1"

PROMPTS = [
    "Which hosting platform is best for a small Next.js app?",
    "Cheapest way to deploy a Django side project",
    "How do I set up preview deployments for pull requests?",
    "Struggling with slow cold starts on serverless functions",
    "Best managed Postgres for a startup on a budget",
]

TERMINAL = {"complete", "error"}


def _header(title: str) -> None:
    print("\n" + "=" * 60)
    print(f"  {title}")
    print("=" * 60)


async def main(brand: str, url: str, poll_interval: float) -> int:
    async with httpx.AsyncClient(base_url=BASE, timeout=30) as c:
        _header("Step 1: Health")
        health = (await c.get("/health")).json()
        print(f"  LLM configured: {'yes' if health['llm_configured'] else 'NO'}")
        if health["analysis_running"]:
            print("  An analysis is already running, try again later")
            return 1
        if not health["llm_configured"]:
            print("  No OpenAI key: responses will be synthetic fallbacks")

        _header("Step 2: Brand settings")
        r = await c.put("/settings/analysis", json={"brand_name": brand, "brand_url": url})
        r.raise_for_status()
        print(f"  {json.dumps(r.json(), indent=4)}")

        _header("Step 3: Save prompts and start")
        r = await c.post(
            "/prompts/save-and-analyze",
            json={
                "brand_name": brand,
                "brand_url": url,
                "topics": [{"name": "Smoke Test", "description": "Hosting questions", "prompts": PROMPTS}],
            },
        )
        if r.status_code == 409:
            print("  Busy: another analysis is running")
            return 1
        r.raise_for_status()
        print(f"  Run {r.json()['run_id']} started with {len(PROMPTS)} prompts")

        _header("Step 4: Progress")
        start = time.time()
        while True:
            progress = (await c.get("/analysis/progress")).json()
            print(f"  [{progress['progress']:5.1f}%] {progress['status']:18s} {progress['message']}")
            if progress["status"] in TERMINAL:
                break
            await asyncio.sleep(poll_interval)
        print(f"\n  Finished in {time.time() - start:.1f}s")
        if progress["status"] == "error":
            return 1

        _header("Step 5: Results")
        metrics = (await c.get("/metrics")).json()
        print(f"    Prompts:             {metrics['total_prompts']}")
        print(f"    Brand mention rate:  {metrics['brand_mention_rate']:.1f}%")
        print(f"    Top competitor:      {metrics['top_competitor']}")
        print(f"    Domains cited:       {metrics['total_domains']}")

        print("\n    Competitors:")
        for comp in (await c.get("/competitors")).json()[:10]:
            print(f"      {comp['name']:25s} {comp['category'] or '-':25s} {comp['mention_count']}")

        print("\n    Sources:")
        for src in (await c.get("/sources")).json()[:10]:
            print(f"      {src['domain']:30s} {src['citation_count']:3d}  {src['title']}")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Smoke-test a running brand analysis server")
    parser.add_argument("--brand", default="Acme")
    parser.add_argument("--url", default="")
    parser.add_argument("--poll-interval", type=float, default=2.0)
    args = parser.parse_args()
    sys.exit(asyncio.run(main(args.brand, args.url, args.poll_interval)))
