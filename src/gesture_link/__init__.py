"""GestureLink - Hand gestures to pointer and workspace control, locally or across devices."""

__version__ = "0.1.0"

from gesture_link.frames import HandFrame, FrameSource, CameraFrameSource
from gesture_link.classifier import LandmarkClassifier, ClassifierConfig, GestureState, Gesture
from gesture_link.bimanual import TwoHandTracker, TwoHandTransform
from gesture_link.commands import ControlCommand, MouseCommand, MouseKind, MessageError
from gesture_link.emitter import CommandEmitter, EmitterConfig, Emission, PointerPhase
from gesture_link.router import Role, RoleRouter, PeerSession
from gesture_link.pipeline import GesturePipeline
from gesture_link.metrics import MetricsCollector
