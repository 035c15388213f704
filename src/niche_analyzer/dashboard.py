"""Streamlit dashboard for exploring and editing niche analyses."""
from __future__ import annotations

import pandas as pd
import streamlit as st

from niche_analyzer.analysis_service import AnalysisService
from niche_analyzer.config import Settings
from niche_analyzer.models import AnalysisView
from niche_analyzer.parsers import CsvFormatError
from niche_analyzer.repository import SessionRepository


@st.cache_resource
def get_services() -> tuple[AnalysisService, SessionRepository]:
    settings = Settings.load()
    repository = SessionRepository(settings.db_path)
    return AnalysisService(repository=repository), repository


def render_summary(view: AnalysisView) -> None:
    summary = view.market_summary
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Market SV", f"{summary.total_market_sv:,}")
    col2.metric("Brand SV", f"{summary.brand_sv:,}")
    col3.metric("Keywords", summary.total_keywords, delta=f"-{summary.deleted_keywords} deleted")
    col4.metric("Revenue", f"{summary.total_revenue:,.2f}")

    strength = view.strength_summary
    st.bar_chart(
        pd.DataFrame(
            {
                "competitors": [strength.molto_forte, strength.forte, strength.medio, strength.debole],
            },
            index=["Molto Forte", "Forte", "Medio", "Debole"],
        )
    )


def edit_section(
    title: str, frame: pd.DataFrame, key_column: str, apply, analysis_id: str
) -> None:
    st.subheader(title)
    if frame.empty:
        st.info(f"No {title.lower()} in this analysis.")
        return
    st.dataframe(frame, use_container_width=True)
    active = frame.loc[~frame["is_deleted"], key_column].tolist()
    deleted = frame.loc[frame["is_deleted"], key_column].tolist()
    c1, c2 = st.columns(2)
    to_delete = c1.multiselect(f"Delete {title.lower()}", options=active, key=f"del-{title}")
    to_restore = c2.multiselect(f"Restore {title.lower()}", options=deleted, key=f"res-{title}")
    if st.button(f"Apply {title.lower()} changes", key=f"apply-{title}") and (to_delete or to_restore):
        result = apply(analysis_id, deleted=to_delete, restored=to_restore)
        st.success(f"Recalculated: market SV {result.new_market_sv:,}")
        st.rerun()


def main() -> None:
    st.set_page_config(page_title="Niche Analyzer", layout="wide")
    st.title("Amazon Niche Keyword & Competitor Analysis")

    service, repository = get_services()

    with st.sidebar.expander("New analysis"):
        keyword_file = st.file_uploader("Keyword ranking CSV", type="csv")
        business_file = st.file_uploader("Business data CSV", type="csv")
        product_file = st.file_uploader("Product data CSV", type="csv")
        if st.button("Analyse") and keyword_file and business_file and product_file:
            try:
                view = service.create_analysis_from_files(keyword_file, business_file, product_file)
                st.success(f"Created analysis {view.analysis_id}")
            except CsvFormatError as exc:
                st.error(str(exc))

    analyses = repository.list_session_ids()
    selected = st.sidebar.selectbox("Analysis", options=analyses)
    if not selected:
        st.info("Upload the three CSV exports to start an analysis.")
        return

    view = service.get_analysis(selected)
    render_summary(view)

    edit_section("Competitors", service.competitor_summary(selected), "asin", service.update_competitors, selected)
    edit_section("Keywords", service.keyword_summary(selected), "phrase", service.update_keywords, selected)
    edit_section("Products", service.product_summary(selected), "asin", service.update_products, selected)

    roots = service.root_keyword_summary(selected)
    st.subheader("Root keywords")
    if not roots.empty:
        st.dataframe(roots, use_container_width=True)
    c1, c2 = st.columns(2)
    to_delete = c1.multiselect("Delete root words", options=roots["root_word"].tolist() if not roots.empty else [])
    to_restore = c2.multiselect("Restore root words", options=view.deleted_root_words)
    if st.button("Apply root word changes") and (to_delete or to_restore):
        service.update_root_keywords(selected, deleted=to_delete, restored=to_restore)
        st.rerun()


if __name__ == "__main__":
    main()
