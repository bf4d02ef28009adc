"""
Service layer for the EOI CAN telemetry host.

Services:
- frame_codec: Decoding of raw frames into typed records
- FrameCollector: Latest-frame-per-identifier buffer
- CanService: CAN adapter management and frame transmission
- pipeline: Channel and shared-collector topologies feeding the snapshot
"""

from eoi_telemetry.services.can_service import CanService
from eoi_telemetry.services.frame_collector import FrameCollector
from eoi_telemetry.services.pipeline import ChannelPipeline, SharedCollectorPipeline, build_pipeline

__all__ = ['CanService', 'FrameCollector', 'ChannelPipeline', 'SharedCollectorPipeline', 'build_pipeline']
