"""Example usage of ResultRefiner with a JSON input file.

This script reads search results and refinement options from a JSON file,
runs temporal decay and MMR reranking, and prints the refined list.

JSON format:
    {
        "workspace_path": ".",
        "now": "2026-03-01T00:00:00+00:00",
        "preview_window": 120,
        "config": {
            "temporal_decay": {"enabled": true, "halfLifeDays": 30},
            "mmr": {"enabled": true, "lambda": 0.5},
            "metrics_enabled": true
        },
        "results": [
            {"path": "memory/2026-02-20.md", "score": 0.9,
             "snippet": "cats and dogs", "source": "memory", "start_line": 1}
        ]
    }

Usage:
    cd ..
    python _examples/example.py [path_to_input.json]

Example:
    python example.py                 # Uses default example_in.json
    python example.py myinput.json    # Uses custom JSON file
"""

import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from refine_config import RefineConfig
from result_refiner import ResultRefiner
from search_result import HybridSearchResult

class Colors:
    YELLOW = "\033[33m"
    CYAN = "\033[36m"
    BRIGHT_YELLOW = "\033[93m"
    BRIGHT_CYAN = "\033[96m"
    DIM = "\033[2m"
    RESET = "\033[0m"

logging.basicConfig(
    level=logging.INFO,
    format= Colors.DIM + '%(asctime)s [%(levelname)s] ◦ %(name)s ◦ %(message)s' + Colors.RESET,
    handlers=[
        logging.StreamHandler()
    ]
)


class RefineParams:
    """Data class for refinement parameters."""
    def __init__(
        self,
        workspace_path: Optional[str],
        results: List[HybridSearchResult],
        config: RefineConfig,
        now: Optional[datetime] = None,
        preview_window: Optional[int] = None
    ):
        self.workspace_path = workspace_path
        self.results = results
        self.config = config
        self.now = now
        self.preview_window = preview_window


def parse_result(data: Dict[str, Any]) -> HybridSearchResult:
    """Build a HybridSearchResult from a JSON object."""
    if "path" not in data or "score" not in data:
        raise ValueError("each result needs 'path' and 'score'")
    return HybridSearchResult(
        path=str(data["path"]),
        score=float(data["score"]),
        snippet=str(data.get("snippet", "")),
        source=str(data.get("source", "memory")),
        start_line=int(data.get("start_line", 1)),
        end_line=data.get("end_line")
    )


def parse_prompt_file(filepath: str) -> RefineParams:
    """Parse JSON input file and extract refinement parameters.

    Args:
        filepath: Path to the JSON input file

    Returns:
        RefineParams object with all refinement parameters
    """
    with open(filepath, 'r', encoding='utf-8') as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError("JSON input must be an object")

    raw_results = data.get("results")
    if not isinstance(raw_results, list):
        raise ValueError("results must be a list")

    now = data.get("now")
    return RefineParams(
        workspace_path=data.get("workspace_path"),
        results=[parse_result(item) for item in raw_results],
        config=RefineConfig.from_mapping(data.get("config")),
        now=datetime.fromisoformat(now) if now else None,
        preview_window=data.get("preview_window")
    )


def main():
    if len(sys.argv) > 1:
        input_file = sys.argv[1]
    else:
        input_file = "example_in.json"

    input_path = Path(input_file)

    if not input_path.exists():
        print(f"❌ Input file not found: {input_file}")
        print()
        print("Create a JSON file with the following format:")
        print("-" * 40)
        print(json.dumps({
            "workspace_path": ".",
            "config": {
                "temporal_decay": {"enabled": True, "halfLifeDays": 30},
                "mmr": {"enabled": True, "lambda": 0.5}
            },
            "results": [
                {"path": "memory/2026-02-20.md", "score": 0.9,
                 "snippet": "cats and dogs", "source": "memory"}
            ]
        }, indent=4))
        print("-" * 40)
        sys.exit(1)

    print("=" * 60)
    print("Search Result Refiner")
    print("=" * 60)
    print()

    try:
        params = parse_prompt_file(str(input_path))
    except Exception as e:
        print(f"❌ Error parsing input file: {e}")
        sys.exit(1)

    print(f"📁 Workspace: {params.workspace_path or '(none)'}")
    print(f"🔢 Results: {len(params.results)}")
    print(f"⏳ Decay: {params.config.decay}")
    print(f"🔀 MMR: {params.config.diversity}")
    print()

    try:
        refiner = ResultRefiner(params.workspace_path, params.config)
    except ValueError as e:
        print(f"❌ Error initializing refiner: {e}")
        sys.exit(1)

    report = asyncio.run(refiner.refine_with_report(params.results, now=params.now))

    print(f"{Colors.BRIGHT_CYAN}{refiner.format_results(report.results, params.preview_window)}{Colors.RESET}")
    print(f"{Colors.YELLOW}{json.dumps(report.to_dict(), indent=2)}{Colors.RESET}")


if __name__ == "__main__":
    main()
