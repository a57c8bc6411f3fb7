#!/usr/bin/env python3
"""
Batch Research Runner

This module runs the manus_research tool across many prompts from a dataset.
Every prompt is an independent tool invocation with its own Manus task and
polling loop. It includes:
- Dataset loading and batching
- Parallel batch processing with multiprocessing
- Checkpointing for fault tolerance and resumption
- Result saving (one JSON line per prompt)
- Status and credit statistics aggregated across all batches

Usage:
    python batch_runner.py --dataset_file=prompts.jsonl --batch_size=5 --run_name=my_run

    # Resume an interrupted run
    python batch_runner.py --dataset_file=prompts.jsonl --batch_size=5 --run_name=my_run --resume

Each dataset line is a JSON object with a 'prompt' field and optional
'agent_profile' and 'max_wait_minutes' fields.
"""

import json
import logging
import time
import traceback
from datetime import datetime
from multiprocessing import Pool
from pathlib import Path
from typing import List, Dict, Any, Tuple

import fire

from tools.manus_client import AGENT_PROFILES, DEFAULT_AGENT_PROFILE

logger = logging.getLogger(__name__)


def _empty_stats() -> Dict[str, Any]:
    return {"statuses": {}, "errors": 0, "credits": 0}


def _count_result(stats: Dict[str, Any], result: Dict[str, Any]) -> None:
    if result.get("success"):
        details = result.get("details") or {}
        status = details.get("status", "unknown")
        stats["statuses"][status] = stats["statuses"].get(status, 0) + 1
        stats["credits"] += details.get("credit_usage") or 0
    else:
        stats["errors"] += 1


def _append_jsonl(path: Path, record: Dict[str, Any]):
    """Append one JSON line, first terminating a line cut short by an interrupted write."""
    line = (json.dumps(record, ensure_ascii=False) + "\n").encode("utf-8")
    with open(path, 'a+b') as f:
        f.seek(0, 2)
        if f.tell() > 0:
            f.seek(-1, 2)
            if f.read(1) != b"\n":
                line = b"\n" + line
        f.write(line)


def _process_single_prompt(
    prompt_index: int,
    prompt_data: Dict[str, Any],
    batch_num: int,
    config: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Run one prompt through the manus_research tool.

    Args:
        prompt_index (int): Index of prompt in dataset
        prompt_data (Dict): Dataset entry containing a 'prompt' field
        batch_num (int): Batch number
        config (Dict): Run-wide defaults

    Returns:
        Dict: Result line for the output file
    """
    from tools.manus_research_tool import manus_research_tool

    args = {
        "prompt": prompt_data["prompt"],
        "agent_profile": prompt_data.get("agent_profile") or config["agent_profile"],
        "max_wait_minutes": prompt_data.get("max_wait_minutes") or config["max_wait_minutes"],
    }

    metadata = {
        "batch_num": batch_num,
        "timestamp": datetime.now().isoformat(),
        "agent_profile": args["agent_profile"],
    }

    try:
        result = json.loads(manus_research_tool(args))
    except Exception as e:
        print(f"❌ Error processing prompt {prompt_index}: {e}")
        if config.get("verbose"):
            traceback.print_exc()
        result = {"error": str(e), "error_type": type(e).__name__}

    if "error" in result:
        return {
            "success": False,
            "prompt_index": prompt_index,
            "prompt": args["prompt"],
            "error": result["error"],
            "error_type": result.get("error_type"),
            "task_url": result.get("task_url"),
            "metadata": metadata,
        }

    return {
        "success": True,
        "prompt_index": prompt_index,
        "prompt": args["prompt"],
        "result": "\n\n".join(block.get("text", "") for block in result.get("content", [])),
        "details": result.get("details", {}),
        "metadata": metadata,
    }


def _process_batch_worker(args: Tuple) -> Dict[str, Any]:
    """
    Worker function to process a single batch of prompts.

    Args:
        args (Tuple): (batch_num, batch_data, output_dir, completed_prompts, config)

    Returns:
        Dict: Batch results with statistics
    """
    batch_num, batch_data, output_dir, completed_prompts_set, config = args

    output_dir = Path(output_dir)
    batch_output_file = output_dir / f"batch_{batch_num}.jsonl"

    prompts_to_process = [
        (idx, data) for idx, data in batch_data
        if idx not in completed_prompts_set
    ]

    if not prompts_to_process:
        print(f"✅ Batch {batch_num}: Already completed (skipping)")
        return {
            "batch_num": batch_num,
            "processed": 0,
            "skipped": len(batch_data),
            "stats": _empty_stats(),
            "completed_prompts": []
        }

    print(f"🔄 Batch {batch_num}: Processing {len(prompts_to_process)} prompts "
          f"(skipping {len(batch_data) - len(prompts_to_process)} already completed)")

    batch_stats = _empty_stats()
    completed_in_batch = []

    for prompt_index, prompt_data in prompts_to_process:
        result = _process_single_prompt(prompt_index, prompt_data, batch_num, config)

        _append_jsonl(batch_output_file, result)

        _count_result(batch_stats, result)
        if result["success"]:
            print(f"   ✅ Prompt {prompt_index}: {result['details'].get('status', 'unknown')}")
        else:
            print(f"   ❌ Prompt {prompt_index}: {result['error']}")

        completed_in_batch.append(prompt_index)

    return {
        "batch_num": batch_num,
        "processed": len(prompts_to_process),
        "skipped": len(batch_data) - len(prompts_to_process),
        "stats": batch_stats,
        "completed_prompts": completed_in_batch
    }


class BatchRunner:
    """
    Manages batch research runs with checkpointing and statistics.
    """

    def __init__(
        self,
        dataset_file: str,
        batch_size: int,
        run_name: str,
        agent_profile: str = DEFAULT_AGENT_PROFILE,
        max_wait_minutes: float = 10,
        num_workers: int = 4,
        output_root: str = "data",
        verbose: bool = False,
    ):
        """
        Initialize the batch runner.

        Args:
            dataset_file (str): Path to the dataset JSONL file with 'prompt' field
            batch_size (int): Number of prompts per batch
            run_name (str): Name for this run (used for checkpointing and output)
            agent_profile (str): Default agent profile for entries without one
            max_wait_minutes (float): Default wait budget per prompt (capped at 10)
            num_workers (int): Number of parallel workers (1 runs batches in this process)
            output_root (str): Directory under which <run_name>/ is created
            verbose (bool): Enable verbose logging
        """
        if agent_profile not in AGENT_PROFILES:
            raise ValueError(f"Unknown agent_profile: {agent_profile}. Available: {', '.join(AGENT_PROFILES)}")

        self.dataset_file = Path(dataset_file)
        self.batch_size = batch_size
        self.run_name = run_name
        self.agent_profile = agent_profile
        self.max_wait_minutes = max_wait_minutes
        self.num_workers = num_workers
        self.verbose = verbose

        self.output_dir = Path(output_root) / run_name
        self.output_dir.mkdir(parents=True, exist_ok=True)

        self.checkpoint_file = self.output_dir / "checkpoint.json"
        self.stats_file = self.output_dir / "statistics.json"

        self.dataset = self._load_dataset()
        self.batches = self._create_batches()

        print(f"📊 Batch Runner Initialized")
        print(f"   Dataset: {self.dataset_file} ({len(self.dataset)} prompts)")
        print(f"   Batch size: {self.batch_size}")
        print(f"   Total batches: {len(self.batches)}")
        print(f"   Agent profile: {self.agent_profile}")
        print(f"   Output directory: {self.output_dir}")
        print(f"   Workers: {self.num_workers}")

    def _load_dataset(self) -> List[Dict[str, Any]]:
        """
        Load dataset from JSONL file.

        Returns:
            List[Dict]: List of dataset entries
        """
        if not self.dataset_file.exists():
            raise FileNotFoundError(f"Dataset file not found: {self.dataset_file}")

        dataset = []
        with open(self.dataset_file, 'r', encoding='utf-8') as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue

                try:
                    entry = json.loads(line)
                except json.JSONDecodeError as e:
                    logger.warning("Invalid JSON on line %s: %s", line_num, e)
                    continue

                if not isinstance(entry, dict) or not entry.get("prompt"):
                    logger.warning("Line %s missing 'prompt' field, skipping", line_num)
                    continue
                dataset.append(entry)

        if not dataset:
            raise ValueError(f"No valid entries found in dataset file: {self.dataset_file}")

        return dataset

    def _create_batches(self) -> List[List[Tuple[int, Dict[str, Any]]]]:
        """Split dataset into batches of (index, entry) tuples."""
        batches = []
        for i in range(0, len(self.dataset), self.batch_size):
            batch = [(idx, entry) for idx, entry in enumerate(self.dataset[i:i + self.batch_size], start=i)]
            batches.append(batch)

        return batches

    def _new_checkpoint(self) -> Dict[str, Any]:
        return {
            "run_name": self.run_name,
            "completed_prompts": [],
            "last_updated": None
        }

    def _load_checkpoint(self) -> Dict[str, Any]:
        """
        Load checkpoint data if it exists.

        Returns:
            Dict: Checkpoint data with completed prompt indices
        """
        if not self.checkpoint_file.exists():
            return self._new_checkpoint()

        try:
            with open(self.checkpoint_file, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Failed to load checkpoint: %s", e)
            return self._new_checkpoint()

    def _save_checkpoint(self, checkpoint_data: Dict[str, Any]):
        checkpoint_data["last_updated"] = datetime.now().isoformat()
        with open(self.checkpoint_file, 'w', encoding='utf-8') as f:
            json.dump(checkpoint_data, f, indent=2, ensure_ascii=False)

    def _batch_files(self) -> List[Path]:
        return sorted(self.output_dir.glob("batch_*.jsonl"))

    def _read_batch_results(self) -> List[Dict[str, Any]]:
        """
        Read every result line from the batch files, one per prompt index.

        A line cut short by an interrupted write is skipped.
        """
        results = {}
        for batch_file in self._batch_files():
            with open(batch_file, 'r', encoding='utf-8') as f:
                for line in f:
                    try:
                        result = json.loads(line)
                        results[result["prompt_index"]] = result
                    except (ValueError, KeyError, TypeError):
                        continue
        return [results[idx] for idx in sorted(results)]

    def _clear_batch_files(self):
        for batch_file in self._batch_files():
            batch_file.unlink()

    def run(self, resume: bool = False) -> Dict[str, Any]:
        """
        Run the batch processing pipeline.

        Without resume, results from an earlier run under the same name are
        discarded. With resume, prompts already recorded in the checkpoint or
        in a batch file are not run again.

        Args:
            resume (bool): Whether to resume from checkpoint

        Returns:
            Dict: Final statistics (also written to statistics.json)
        """
        print("\n" + "=" * 70)
        print("🚀 Starting Batch Research")
        print("=" * 70)

        if resume:
            checkpoint_data = self._load_checkpoint()
            completed_prompts_set = set(checkpoint_data.get("completed_prompts", []))
            completed_prompts_set.update(r["prompt_index"] for r in self._read_batch_results())
        else:
            checkpoint_data = self._new_checkpoint()
            completed_prompts_set = set()
            self._clear_batch_files()

        if completed_prompts_set:
            print(f"📂 Resuming from checkpoint ({len(completed_prompts_set)} prompts already completed)")

        checkpoint_data["completed_prompts"] = sorted(completed_prompts_set)
        self._save_checkpoint(checkpoint_data)

        config = {
            "agent_profile": self.agent_profile,
            "max_wait_minutes": self.max_wait_minutes,
            "verbose": self.verbose,
        }

        start_time = time.time()

        tasks = [
            (
                batch_num,
                batch_data,
                str(self.output_dir),  # Convert Path to string for pickling
                frozenset(completed_prompts_set),
                config
            )
            for batch_num, batch_data in enumerate(self.batches)
        ]

        def record(batch_result: Dict[str, Any]):
            completed_prompts_set.update(batch_result.get("completed_prompts", []))
            checkpoint_data["completed_prompts"] = sorted(completed_prompts_set)
            self._save_checkpoint(checkpoint_data)

        if self.num_workers <= 1:
            for task in tasks:
                record(_process_batch_worker(task))
        else:
            with Pool(processes=self.num_workers) as pool:
                for batch_result in pool.imap_unordered(_process_batch_worker, tasks):
                    record(batch_result)

        results = self._read_batch_results()
        total_stats = _empty_stats()
        combined_file = self.output_dir / "results.jsonl"
        with open(combined_file, 'w', encoding='utf-8') as outfile:
            for result in results:
                _count_result(total_stats, result)
                outfile.write(json.dumps(result, ensure_ascii=False) + "\n")

        final_stats = {
            "run_name": self.run_name,
            "total_prompts": len(self.dataset),
            "total_batches": len(self.batches),
            "batch_size": self.batch_size,
            "agent_profile": self.agent_profile,
            "completed_at": datetime.now().isoformat(),
            "duration_seconds": round(time.time() - start_time, 2),
            "statuses": total_stats["statuses"],
            "errors": total_stats["errors"],
            "credits_used": total_stats["credits"],
        }

        with open(self.stats_file, 'w', encoding='utf-8') as f:
            json.dump(final_stats, f, indent=2, ensure_ascii=False)

        print("\n" + "=" * 70)
        print("📊 BATCH RESEARCH COMPLETE")
        print("=" * 70)
        print(f"✅ Total prompts: {len(self.dataset)}")
        for status, count in sorted(total_stats["statuses"].items()):
            print(f"   {status:<12} {count}")
        print(f"   {'errors':<12} {total_stats['errors']}")
        print(f"💳 Credits used: {total_stats['credits']}")
        print(f"⏱️  Total duration: {final_stats['duration_seconds']}s")
        print(f"\n💾 Results saved to: {self.output_dir}")
        print(f"   - Results: {combined_file.name} (combined)")
        print(f"   - Statistics: {self.stats_file.name}")
        print(f"   - Checkpoint: {self.checkpoint_file.name}")

        return final_stats


def main(
    dataset_file: str = None,
    batch_size: int = None,
    run_name: str = None,
    agent_profile: str = DEFAULT_AGENT_PROFILE,
    max_wait_minutes: float = 10,
    num_workers: int = 4,
    output_root: str = "data",
    resume: bool = False,
    verbose: bool = False,
):
    """
    Run batch research over a dataset of prompts.

    Args:
        dataset_file (str): Path to JSONL file with 'prompt' field in each entry
        batch_size (int): Number of prompts per batch
        run_name (str): Name for this run (used for output and checkpointing)
        agent_profile (str): Default agent profile (default: "manus-1.6")
        max_wait_minutes (float): Default wait budget per prompt (default: 10, capped at 10)
        num_workers (int): Number of parallel worker processes (default: 4)
        output_root (str): Output directory root (default: "data")
        resume (bool): Resume from checkpoint if run was interrupted (default: False)
        verbose (bool): Enable verbose logging (default: False)

    Examples:
        python batch_runner.py --dataset_file=prompts.jsonl --batch_size=5 --run_name=my_run
        python batch_runner.py --dataset_file=prompts.jsonl --batch_size=5 --run_name=my_run --resume
    """
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO)

    if not dataset_file:
        print("❌ Error: --dataset_file is required")
        return 1

    if not batch_size or batch_size < 1:
        print("❌ Error: --batch_size must be a positive integer")
        return 1

    if not run_name:
        print("❌ Error: --run_name is required")
        return 1

    try:
        runner = BatchRunner(
            dataset_file=dataset_file,
            batch_size=batch_size,
            run_name=run_name,
            agent_profile=agent_profile,
            max_wait_minutes=max_wait_minutes,
            num_workers=num_workers,
            output_root=output_root,
            verbose=verbose,
        )
        runner.run(resume=resume)

    except (OSError, ValueError) as e:
        print(f"\n❌ Fatal error: {e}")
        if verbose:
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    fire.Fire(main)
