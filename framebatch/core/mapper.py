"""Default mapper used when a job configures none."""

from framebatch.core.base import FrameMapper
from framebatch.core.frame import Frame


class DefaultFrameMapper(FrameMapper):
    """Copies every field of the working frame into the target frame."""

    def process(self, transaction) -> None:
        if transaction.working_frame is None:
            return
        if transaction.target_frame is None:
            transaction.target_frame = Frame()
        for name, value in transaction.working_frame.items():
            transaction.target_frame[name] = value
