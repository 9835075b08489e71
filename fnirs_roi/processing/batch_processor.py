import logging
from typing import List, Sequence

from tqdm import tqdm

from fnirs_roi.core.data import ChannelPayload
from fnirs_roi.processing.roi_maker import ROIMaker

logger = logging.getLogger(__name__)


class BatchROIProcessor:
    """Applies one ROIMaker to many payloads, skipping the ones that fail."""

    def __init__(self, maker: ROIMaker, show_progress: bool = True):
        """
        Initialize batch processor.

        Args:
            maker: Configured ROIMaker (channel probe and ROIs set)
            show_progress: Show a tqdm progress bar while processing
        """
        self.maker = maker
        self.show_progress = show_progress
        logger.info("Initialized BatchROIProcessor")

    def process(self, payloads: Sequence[ChannelPayload]) -> dict:
        """
        Project each payload into ROI space independently.

        Args:
            payloads: Channel-space payloads, possibly of mixed variants

        Returns:
            Dictionary containing:
            - processed: ROI-space payloads, in input order
            - skipped: List of (index, error message) for payloads that failed
            - total: Number of input payloads
        """
        processed = []
        skipped = []

        for i, payload in enumerate(tqdm(payloads, desc="Applying ROIs",
                                         disable=not self.show_progress)):
            try:
                processed.append(self.maker.apply(payload))
            except Exception as e:
                logger.error(f"Failed to apply ROIs to payload {i}: {str(e)}")
                skipped.append((i, str(e)))

        logger.info(f"Processed {len(processed)}/{len(payloads)} payloads, skipped {len(skipped)}")
        return {
            'processed': processed,
            'skipped': skipped,
            'total': len(payloads)
        }

    def processed_indices(self, results: dict) -> List[int]:
        """Indices of the payloads that made it through, from a process() result."""
        skipped = {i for i, _ in results['skipped']}
        return [i for i in range(results['total']) if i not in skipped]
