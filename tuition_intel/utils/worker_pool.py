"""Worker pool that fans batch targets out over threads."""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable


class WorkerPool:
    """ThreadPoolExecutor wrapper; a failing item is reported, never raised."""

    def __init__(self, max_workers: int = 4, logger=None):
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.max_workers = max_workers
        self.logger = logger or logging.getLogger(__name__)

    def map(self, func: Callable[[Any], Any], items: list, desc: str = "Processing") -> list:
        """
        Run func over items concurrently.

        Returns:
            (success, item, result_or_error) tuples in input order
        """
        results: list = [None] * len(items)

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_index = {executor.submit(func, item): index for index, item in enumerate(items)}
            for future in as_completed(future_to_index):
                index = future_to_index[future]
                item = items[index]
                try:
                    results[index] = (True, item, future.result())
                except Exception as e:
                    results[index] = (False, item, e)
                    self.logger.error(f"{desc}: Failed for item {item}: {e}", exc_info=True)

        failed = sum(1 for success, _, _ in results if not success)
        self.logger.info(f"{desc} complete: {len(items) - failed} successful, {failed} failed")
        return results
