# app/streamlit_app.py
# formcoach: Streamlit page: upload a clip, run pose analysis, get coach feedback
# PLUS: optional S3 persistence of each run (annotated frames + angles + manifest)

from __future__ import annotations

import logging
import sys
import uuid
from pathlib import Path
from typing import Tuple

import matplotlib.pyplot as plt
import streamlit as st
from botocore.exceptions import ClientError, NoCredentialsError

# ----------------------------- Page config -----------------------------
st.set_page_config(page_title="formcoach", layout="wide")
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

st.title("formcoach: Pose-Assisted Form Feedback")
st.caption("Upload a short training clip. We sample frames, track your joints, and send the annotated frames to the coach.")

# ----------------------------- Paths -----------------------------
ROOT = Path(__file__).resolve().parents[1]
DATA_RAW = ROOT / "data" / "raw"
DATA_RAW.mkdir(parents=True, exist_ok=True)

BACKEND_SRC = ROOT / "backend" / "src"
if str(BACKEND_SRC) not in sys.path:
    sys.path.append(str(BACKEND_SRC))

try:
    from formcoach import storage
    from formcoach.disciplines import DISCIPLINES, discipline_label
    from formcoach.errors import ExtractionError
    from formcoach.form_rules import cues_by_frame
    from formcoach.llm_coach import request_form_feedback
    from formcoach.pipeline import analyze_video_file
    from formcoach.processor import points_to_frame
except Exception as e:
    st.error("Could not import backend modules. Check your folder structure and filenames.")
    st.exception(e)
    st.stop()


# ----------------------------- Session state init -----------------------------
def ss_init():
    defaults = {
        "file_sig": None,
        "video_path": None,
        "analysis": None,
        "feedback": None,
        "saved_to_s3": False,
        "s3_last_error": None,
    }
    for k, v in defaults.items():
        if k not in st.session_state:
            st.session_state[k] = v


ss_init()


# ----------------------------- Helpers -----------------------------
def save_upload(uploaded_file, out_dir: Path) -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / f"clip_{uuid.uuid4().hex[:8]}{Path(uploaded_file.name).suffix}"
    out_path.write_bytes(uploaded_file.getbuffer())
    return out_path


def file_signature(uploaded_file) -> Tuple[str, int]:
    # stable signature across reruns
    return (uploaded_file.name, int(len(uploaded_file.getbuffer())))


def guess_video_content_type(p: Path) -> str:
    suf = p.suffix.lower()
    if suf == ".mov":
        return "video/quicktime"
    if suf in (".m4v", ".mp4"):
        return "video/mp4"
    return "application/octet-stream"


def reset_run_state():
    for k in ("analysis", "feedback", "s3_last_error"):
        st.session_state[k] = None
    st.session_state["saved_to_s3"] = False


# ----------------------------- Sidebar controls -----------------------------
st.sidebar.header("Controls")
discipline = st.sidebar.selectbox(
    "Discipline",
    options=list(DISCIPLINES),
    format_func=discipline_label,
    key="discipline",
)
frame_count = st.sidebar.slider("Frames to sample", min_value=8, max_value=12, value=8, key="frame_count")
use_coach = st.sidebar.checkbox("Ask the AI coach", value=True, key="use_coach")

st.sidebar.divider()
st.sidebar.subheader("Progress tracking (S3)")
if not storage.s3_enabled():
    st.sidebar.caption("Set FORMCOACH_S3_BUCKET to enable saving runs.")

# ----------------------------- Upload -----------------------------
clip = st.file_uploader("Upload training clip (.mp4/.mov/.m4v)", type=["mp4", "mov", "m4v"], key="clip")
if clip is None:
    st.stop()

sig = file_signature(clip)
if sig != st.session_state["file_sig"]:
    st.session_state["file_sig"] = sig
    st.session_state["video_path"] = str(save_upload(clip, DATA_RAW))
    reset_run_state()

st.video(clip)

if st.button("Analyze technique", type="primary"):
    reset_run_state()
    stage = st.empty()
    bar = st.progress(0.0)

    def on_progress(current: int, total: int):
        stage.info(f"Analyzing technique... frame {current}/{total}")
        bar.progress(current / max(1, total))

    try:
        analysis = analyze_video_file(
            st.session_state["video_path"],
            discipline,
            frame_count=frame_count,
            on_status=stage.info,
            on_progress=on_progress,
        )
    except ExtractionError as e:
        stage.empty()
        st.error(e.user_message)
        st.caption(str(e))
        st.stop()

    st.session_state["analysis"] = analysis
    if use_coach:
        stage.info("The coach is reviewing your form...")
        st.session_state["feedback"] = request_form_feedback(
            analysis.jpeg_frames(), discipline, pose_summary=analysis.summary
        )
    stage.empty()
    bar.empty()

analysis = st.session_state.get("analysis")
if analysis is None:
    st.stop()

# ----------------------------- Results -----------------------------
for w in analysis.warnings:
    st.warning(w)

c1, c2, c3 = st.columns(3)
c1.metric("Frames sampled", len(analysis.frames))
c2.metric("Frames with pose", len(analysis.points))
c3.metric("Detection quality", f"{analysis.quality_score}%")

st.subheader("Annotated frames")
cols = st.columns(4)
for i, (frame, img) in enumerate(zip(analysis.frames, analysis.annotated)):
    cols[i % 4].image(img, channels="BGR", caption=f"{frame.timestamp:.1f}s")

if analysis.points:
    st.subheader("Form cues")
    cues_for = cues_by_frame(analysis.points, analysis.discipline)
    times = {p.frame_number: p.timestamp for p in analysis.points}
    picked = st.selectbox(
        "Frame",
        options=list(cues_for),
        format_func=lambda n: f"#{n + 1} ({times[n]:.2f}s)",
        key="cue_frame",
    )
    cues = cues_for[picked]
    if not cues:
        st.caption("No cues for this frame.")
    for cue in cues:
        metric = f" ({cue.metric})" if cue.metric else ""
        st.write(f"{cue.icon} {cue.message}{metric}")

    st.subheader("Joint angles over time")
    df = points_to_frame(analysis.points)
    fig, ax = plt.subplots(figsize=(8, 3))
    for col in ("knee", "hip", "elbow"):
        ax.plot(df["t"], df[col], marker="o", label=col)
    ax.set_xlabel("time (s)")
    ax.set_ylabel("angle (deg)")
    ax.legend()
    st.pyplot(fig)

if analysis.summary:
    with st.expander("Technique summary (sent to the coach)"):
        st.code(analysis.summary)

feedback = st.session_state.get("feedback")
if feedback:
    st.subheader("Coach feedback")
    st.write(feedback["analysis"])
    st.caption(f"model: {feedback['model_used']}")

# ----------------------------- Save -----------------------------
if storage.s3_enabled():
    save_btn = st.button("Save this run to S3", disabled=st.session_state.get("saved_to_s3", False))
    if save_btn:
        st.session_state["s3_last_error"] = None
        try:
            run_id, _ = storage.utc_run_id()
            video_path = Path(st.session_state["video_path"])
            storage.upload_file(
                video_path,
                storage.s3_key(run_id, video_path.name, "raw"),
                content_type=guess_video_content_type(video_path),
            )
            manifest = storage.save_analysis(
                analysis,
                feedback=feedback["analysis"] if feedback else None,
                run_id=run_id,
            )
            st.session_state["saved_to_s3"] = True
            st.success(f"Uploaded ✅ run {manifest['run_id']}")
        except NoCredentialsError:
            st.session_state["s3_last_error"] = "No AWS credentials found."
            st.error("AWS credentials not found. Run `aws configure` or set AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY.")
        except ClientError as e:
            st.session_state["s3_last_error"] = str(e)
            st.error(f"S3 ClientError: {e}")
