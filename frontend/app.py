from dotenv import load_dotenv

load_dotenv(".env.local"); load_dotenv()  # also loads .env if present

# app.py
import base64
import io
import os

import fitz  # PyMuPDF
import requests
import streamlit as st
from PIL import Image, ImageDraw
from streamlit_image_coordinates import streamlit_image_coordinates

st.set_page_config(page_title="PDF Template Stamper", layout="wide")

BACKEND = os.getenv("BACKEND_URL", "http://127.0.0.1:8000")
PREVIEW_ZOOM = float(os.getenv("PREVIEW_ZOOM", "1.25"))
MARKER_RADIUS = 4


def api(method: str, path: str, **kwargs):
    r = requests.request(method, f"{BACKEND}{path}", timeout=120, **kwargs)
    if not r.ok:
        try:
            detail = r.json().get("detail", r.text)
        except ValueError:
            detail = r.text
        st.error(detail)
        return None
    return r.json()


def ensure_session() -> str:
    sid = st.session_state.get("sid")
    if sid:
        r = requests.get(f"{BACKEND}/sessions/{sid}", timeout=15)
        if r.ok:
            return sid
    j = api("POST", "/sessions")
    if j is None:
        st.stop()
    st.session_state["sid"] = j["session_id"]
    st.session_state.pop("uploaded_pdf_key", None)
    st.session_state.pop("uploaded_csv_key", None)
    st.session_state.pop("last_click", None)
    return st.session_state["sid"]


def render_first_page(pdf_bytes: bytes) -> Image.Image:
    doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    try:
        pix = doc[0].get_pixmap(matrix=fitz.Matrix(PREVIEW_ZOOM, PREVIEW_ZOOM), alpha=False)
        return Image.frombytes("RGB", [pix.width, pix.height], pix.samples)
    finally:
        doc.close()


def draw_markers(img: Image.Image, fields: list[dict]) -> Image.Image:
    out = img.copy()
    draw = ImageDraw.Draw(out)
    w, h = out.size
    for f in fields:
        cx = f["x"] / 100 * w
        cy = f["y"] / 100 * h
        draw.ellipse(
            (cx - MARKER_RADIUS, cy - MARKER_RADIUS, cx + MARKER_RADIUS, cy + MARKER_RADIUS),
            fill="#3b82f6",
        )
        draw.text((cx + MARKER_RADIUS + 2, cy - 6), f["field_name"], fill="#1d4ed8")
    return out


sid = ensure_session()

# ------------- Sidebar: template controls -------------
st.sidebar.title("Template")

state = api("GET", f"/sessions/{sid}") or {}
template_mode = st.sidebar.toggle("Template mode", value=state.get("template_mode", False))
if template_mode != state.get("template_mode", False):
    state = api("POST", f"/sessions/{sid}/template-mode", json={"enabled": template_mode}) or state

if st.sidebar.button("New session"):
    api("DELETE", f"/sessions/{sid}")
    st.session_state.pop("sid", None)
    st.rerun()

if template_mode:
    csv_file = st.sidebar.file_uploader("Upload CSV", type=["csv"])
    if csv_file is not None:
        csv_key = (csv_file.name, csv_file.size)
        if st.session_state.get("uploaded_csv_key") != csv_key:
            j = api(
                "POST",
                f"/sessions/{sid}/rows",
                json={"csv_base64": base64.b64encode(csv_file.getvalue()).decode("ascii")},
            )
            if j is not None:
                st.session_state["uploaded_csv_key"] = csv_key
                st.sidebar.success(f"Loaded {j['row_count']} rows")
                state = api("GET", f"/sessions/{sid}") or state

    st.sidebar.caption(f"Columns: {', '.join(state.get('columns', [])) or '—'}")
    field_name = st.sidebar.text_input(
        "Field name (should match CSV column header)",
        key="field_name",
    )

    st.sidebar.markdown("### Fields")
    for i, f in enumerate(state.get("fields", [])):
        c1, c2 = st.sidebar.columns([4, 1])
        c1.write(f"`{f['field_name']}` · ({f['x']:.1f}%, {f['y']:.1f}%)")
        if c2.button("✕", key=f"rm_{i}"):
            api("DELETE", f"/sessions/{sid}/fields/{i}")
            st.rerun()

# ------------- Main: viewer -------------
st.title("PDF Template Stamper")

pdf_file = st.file_uploader(
    "Upload template PDF" if template_mode else "Upload a PDF file",
    type=["pdf"],
)
if not pdf_file:
    st.info("Upload a PDF to begin.")
    st.stop()

pdf_bytes = pdf_file.getvalue()
pdf_key = (pdf_file.name, pdf_file.size)
if st.session_state.get("uploaded_pdf_key") != pdf_key:
    j = api(
        "POST",
        f"/sessions/{sid}/document",
        json={"pdf_base64": base64.b64encode(pdf_bytes).decode("ascii"), "filename": pdf_file.name},
    )
    if j is not None:
        st.session_state["uploaded_pdf_key"] = pdf_key
        state = api("GET", f"/sessions/{sid}") or state

try:
    page_img = render_first_page(pdf_bytes)
except Exception as e:
    st.error(f"Could not read PDF: {e}")
    st.stop()

col_view, col_gen = st.columns([3, 2])

with col_view:
    if template_mode:
        st.caption("Click the page to place the field named in the sidebar.")
        shown = draw_markers(page_img, state.get("fields", []))
        click = streamlit_image_coordinates(shown, key="field_clicker")
        if click and click != st.session_state.get("last_click"):
            st.session_state["last_click"] = click
            if not field_name:
                st.warning("Enter a field name first.")
            else:
                w, h = page_img.size
                j = api(
                    "POST",
                    f"/sessions/{sid}/fields",
                    json={
                        "click_x": click["x"],
                        "click_y": click["y"],
                        "box_width": click.get("width", w),
                        "box_height": click.get("height", h),
                        "field_name": field_name,
                    },
                )
                if j is not None:
                    st.rerun()
    else:
        st.image(page_img)

with col_gen:
    if template_mode:
        st.subheader("Generate")
        st.write(
            f"Template: **{'yes' if state.get('has_template') else 'no'}** · "
            f"Fields: **{len(state.get('fields', []))}** · Rows: **{state.get('row_count', 0)}**"
        )
        if st.button("Generate PDFs", disabled=not state.get("can_generate")):
            with st.spinner("Generating…"):
                j = api("POST", f"/sessions/{sid}/generate")
            if j is not None:
                st.session_state["generated"] = j["documents"]

        for doc in st.session_state.get("generated", []):
            st.download_button(
                f"Download {doc['filename']}",
                data=io.BytesIO(base64.b64decode(doc["pdf_base64"])),
                file_name=doc["filename"],
                mime="application/pdf",
                key=f"dl_{doc['pdf_id']}",
            )
