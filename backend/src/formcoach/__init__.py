"""formcoach: pose analysis of short training clips for sport form feedback."""

from .angles import JointAngles, angle_deg, compute_joint_angles
from .errors import CoachError, ExtractionError, FormCoachError, InitializationError
from .frames import ExtractedFrame, OpenCVVideoSource, extract_frames, frame_timestamps
from .pipeline import VideoAnalysis, analyze_video, analyze_video_file
from .pose import Landmark, PoseDetector, PoseLandmark, open_pose_detector
from .processor import PoseDataPoint, pose_quality_score, pose_statistics, process_pose_data
from .skeleton import ImageSurface, SkeletonStyle, annotate_frame, draw_skeleton
from .summary import NO_POSE_DATA, summarize_technique

__version__ = "0.1.0"
