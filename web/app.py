#!/usr/bin/env python3
from __future__ import annotations

from typing import Optional

import pandas as pd
import streamlit as st

from found_wizard.config import ConfigError, load_config
from found_wizard.export import (
    EXPORT_FORMATS,
    EXPORT_MIME_TYPES,
    build_export,
    build_preview,
    export_filename,
)
from found_wizard.loader import IngestionError, parse_csv_bytes
from found_wizard.profiles import MemoryProfileStore, ProfileStore
from found_wizard.remote import MAX_REMOTE_FILE_MB, fetch_remote_csv
from found_wizard.schema import CanonicalField, SchemaError, default_schema, describe_field, load_schema
from found_wizard.validation import errors_by_row
from found_wizard.wizard import STEP_TITLES, Step, Wizard

UNMAPPED = "(not mapped)"
SUPPORTED_UPLOAD_EXTS = ["csv", "tsv", "txt"]


def build_wizard() -> Wizard:
    config = load_config()
    schema = load_schema(config.schema_path) if config.schema_path else default_schema()
    store: MemoryProfileStore = ProfileStore(config.profile_path) if config.use_profiles else MemoryProfileStore()
    return Wizard(schema, profile_store=store, heuristics=config.heuristics)


def ensure_state() -> Optional[Wizard]:
    if "wizard" not in st.session_state:
        try:
            st.session_state["wizard"] = build_wizard()
        except (ConfigError, SchemaError) as exc:
            st.error(f"Could not start the wizard: {exc}")
            return None
    st.session_state.setdefault("public_url_input", "")
    st.session_state.setdefault("upload_error", None)
    st.session_state.setdefault("upload_generation", 0)
    st.session_state.setdefault("reset_generation", 0)
    return st.session_state["wizard"]


def set_visuals() -> None:
    st.set_page_config(page_title="found-wizard", page_icon="🧳", layout="wide", initial_sidebar_state="collapsed")
    st.markdown(
        """
        <style>
        .block-container {
            padding-top: 2rem;
            padding-bottom: 2rem;
            max-width: 1200px;
        }
        [data-testid="stDecoration"], [data-testid="stStatusWidget"] {
            display: none !important;
        }
        .wizard-step { color: #8b8ba3; }
        .wizard-step-current { color: #7c3aed; font-weight: 600; }
        </style>
        """,
        unsafe_allow_html=True,
    )


def render_progress(wizard: Wizard) -> None:
    cols = st.columns(len(Step))
    for col, step in zip(cols, Step):
        css = "wizard-step-current" if step == wizard.current_step else "wizard-step"
        done = "✓ " if step < wizard.current_step else ""
        col.markdown(f'<span class="{css}">{done}{int(step)}. {STEP_TITLES[step]}</span>', unsafe_allow_html=True)


# ── step 1 ──────────────────────────────────────────────────────────────────


def accept_upload(wizard: Wizard, parsed, file_name: str) -> None:
    wizard.restart()
    wizard.load_data(parsed, file_name)
    st.session_state["upload_error"] = None
    st.session_state["upload_generation"] += 1


def render_upload(wizard: Wizard) -> None:
    st.subheader("Upload the register")
    uploaded = st.file_uploader("CSV file", type=SUPPORTED_UPLOAD_EXTS, key=f"upload_input_{st.session_state['reset_generation']}")
    if uploaded is not None and uploaded.name != wizard.working_set.file_name:
        try:
            accept_upload(wizard, parse_csv_bytes(uploaded.getvalue(), file_name=uploaded.name), uploaded.name)
        except IngestionError as exc:
            st.session_state["upload_error"] = str(exc)

    url = st.text_input(
        "Or a public file URL",
        key="public_url_input",
        placeholder="Direct links and public share links from GitHub, Dropbox, Google Drive, Google Sheets, OneDrive or Box.",
    )
    st.caption(f"URL mode makes an outbound request and rejects files above {MAX_REMOTE_FILE_MB} MB.")
    if st.button("Fetch URL", disabled=not url.strip()):
        try:
            parsed, file_name = fetch_remote_csv(url.strip())
            accept_upload(wizard, parsed, file_name)
        except (IngestionError, ValueError) as exc:
            st.session_state["upload_error"] = str(exc)

    if st.session_state["upload_error"]:
        st.error(st.session_state["upload_error"])
    if not wizard.working_set.has_data:
        st.info("Upload a CSV export of the lost & found register to begin.")
        return

    left, right = st.columns(2)
    left.metric("File", wizard.working_set.file_name or "-")
    right.metric("Rows", len(wizard.rows))
    for warning in wizard.warnings:
        st.warning(warning)
    st.caption("First rows of the file")
    st.dataframe(pd.DataFrame(wizard.rows[:5], columns=wizard.headers), width="stretch", hide_index=True)


# ── step 2 ──────────────────────────────────────────────────────────────────


def render_mapping(wizard: Wizard) -> None:
    st.subheader("Map columns to the register schema")
    if wizard.mapping_source == "profile":
        st.info("Restored the mapping you used last time for these columns.")
    if wizard.perfect_mapping:
        st.success("Standard template recognised: every required field was matched automatically.")

    options = [UNMAPPED, *wizard.headers]
    generation = st.session_state["upload_generation"]
    for field in wizard.schema:
        current = wizard.mapping.header_for(field.name)
        label = f"{field.label}{' *' if field.required else ''}"
        choice = st.selectbox(
            label,
            options,
            index=options.index(current) if current in options else 0,
            help=describe_field(field),
            key=f"map_{generation}_{field.name}",
        )
        wizard.set_field_mapping(field.name, None if choice == UNMAPPED else choice)

    missing = wizard.missing_required
    if missing:
        st.warning("Required fields without a column: " + ", ".join(field.label for field in missing))


# ── step 3 ──────────────────────────────────────────────────────────────────


def enum_fix_options(field: CanonicalField, current: str) -> tuple[list[str], int]:
    """Allowed values behind an empty choice, which stays selected unless the cell already holds one."""
    options = ["", *field.examples]
    return options, options.index(current) if current in field.examples else 0


def render_validation(wizard: Wizard) -> None:
    st.subheader("Validate and fix")
    if not wizard.errors:
        st.success(f"All {len(wizard.records)} records are valid.")
        return

    grouped = errors_by_row(wizard.errors)
    st.error(f"{len(wizard.errors)} error(s) in {len(grouped)} row(s). Fix them to continue.")
    for row_index, row_errors in grouped.items():
        with st.expander(f"Row {row_index + 1}", expanded=len(grouped) <= 10):
            for error in row_errors:
                field = wizard.schema.field(error.field)
                with st.form(key=f"fix_{row_index}_{error.field}"):
                    st.markdown(f"**{field.label}**: {error.message}")
                    if field.is_enum:
                        options, index = enum_fix_options(field, wizard.records[row_index].value(error.field))
                        value = st.selectbox("New value", options, index=index)
                    else:
                        value = st.text_input(
                            "New value",
                            value=error.current_value or "",
                            placeholder="YYYY-MM-DD" if field.type == "date" else "",
                        )
                    if st.form_submit_button("Apply"):
                        wizard.apply_fix(row_index, error.field, value)
                        st.rerun()


# ── step 4/5 ────────────────────────────────────────────────────────────────


def render_preview(wizard: Wizard) -> None:
    st.subheader("Preview")
    preview = build_preview(wizard.records, wizard.schema)
    cols = st.columns(3)
    cols[0].metric("Records", preview["total_records"])
    cols[1].metric("Categories", preview["distinct_categories"] if preview["distinct_categories"] is not None else "-")
    cols[2].metric("Locations", preview["distinct_locations"] if preview["distinct_locations"] is not None else "-")
    st.dataframe(preview["head"], width="stretch", hide_index=True)


def render_export(wizard: Wizard) -> None:
    st.subheader("Export")
    st.caption("Files keep the schema column order and contain only validated records.")
    cols = st.columns(len(EXPORT_FORMATS))
    for col, fmt in zip(cols, EXPORT_FORMATS):
        col.download_button(
            f"Download {fmt.upper()}",
            data=build_export(wizard.records, wizard.schema, fmt),
            file_name=export_filename(fmt),
            mime=EXPORT_MIME_TYPES[fmt],
            width="stretch",
            key=f"download_{fmt}",
        )
    if st.button("Start over"):
        wizard.restart()
        st.session_state["upload_generation"] += 1
        st.session_state["reset_generation"] += 1
        st.rerun()


RENDERERS = {
    Step.UPLOAD: render_upload,
    Step.MAP: render_mapping,
    Step.VALIDATE: render_validation,
    Step.PREVIEW: render_preview,
    Step.EXPORT: render_export,
}


def render_navigation(wizard: Wizard) -> None:
    back, _, forward = st.columns([1, 4, 1])
    if back.button("Back", disabled=not wizard.can_go_prev, width="stretch"):
        wizard.go_prev()
        st.rerun()
    if wizard.current_step < Step.EXPORT:
        if forward.button("Next", type="primary", disabled=not wizard.can_go_next, width="stretch"):
            wizard.go_next()
            st.rerun()


def main() -> None:
    set_visuals()
    wizard = ensure_state()
    if wizard is None:
        return

    st.title("found-wizard")
    st.caption("Turn a lost & found register export into a validated dataset in five steps.")
    render_progress(wizard)
    st.divider()
    RENDERERS[wizard.current_step](wizard)
    st.divider()
    render_navigation(wizard)


if __name__ == "__main__":
    main()
