"""Tests for the slide deck generator."""

import matplotlib.pyplot as plt
import pandas as pd
import pytest
from pptx import Presentation
from pptx.enum.shapes import MSO_SHAPE_TYPE

from delivery_modeling.config import Config
from delivery_modeling.deck import build_deck


@pytest.fixture
def deck_config(tmp_path):
    class DeckConfig(Config):
        OUTPUT_DIR = tmp_path / "experiments"
        DECK_PATH = tmp_path / "deck" / "talk.pptx"
        SUMMARY_REPORT_PATH = OUTPUT_DIR / "test_set_summary.csv"
        RESULTS_PLOT_PATH = OUTPUT_DIR / "comparison_chart.png"
        PREDICTIONS_PLOT_PATH = OUTPUT_DIR / "observed_vs_predicted.png"
        HOUR_EFFECT_PLOT_PATH = OUTPUT_DIR / "hour_effect.png"

    return DeckConfig


def _save_png(path):
    path.parent.mkdir(parents=True, exist_ok=True)
    fig, ax = plt.subplots(figsize=(3, 2))
    ax.plot([0, 1], [0, 1])
    fig.savefig(path)
    plt.close(fig)


def _slide_texts(slide):
    return [shape.text_frame.text for shape in slide.shapes if shape.has_text_frame]


class TestBuildDeck:

    def test_deck_without_results(self, deck_config, capsys):
        path = build_deck(deck_config)
        assert path == deck_config.DECK_PATH
        assert path.exists()
        assert "slides saved to" in capsys.readouterr().out

        prs = Presentation(str(path))
        slides = list(prs.slides)
        assert len(slides) == 8
        assert "Tidy modeling of delivery times" in _slide_texts(slides[0])
        assert all(slide.has_notes_slide and slide.notes_slide.notes_text_frame.text for slide in slides)
        assert any("Run the training pipeline" in t for t in _slide_texts(slides[-1]))

    def test_results_table(self, deck_config):
        results = pd.DataFrame({
            "model": ["cubist_rules", "linear_reg"],
            "score_cv": [2.1, 3.4],
            "rmse_test": [2.2, 3.5],
            "rsq_test": [0.9, 0.7],
        })
        prs = Presentation(str(build_deck(deck_config, results=results)))
        tables = [shape.table for shape in list(prs.slides)[-1].shapes if shape.has_table]
        assert len(tables) == 1
        assert tables[0].cell(0, 0).text == "model"
        assert tables[0].cell(1, 0).text == "cubist_rules"
        assert tables[0].cell(1, 2).text == "2.2000"

    def test_summary_read_from_disk(self, deck_config):
        deck_config.OUTPUT_DIR.mkdir(parents=True)
        pd.DataFrame({"model": ["linear_reg"], "rmse_test": [3.0]}).to_csv(deck_config.SUMMARY_REPORT_PATH, index=False)
        prs = Presentation(str(build_deck(deck_config)))
        assert any(shape.has_table for shape in list(prs.slides)[-1].shapes)

    def test_plots_are_embedded(self, deck_config, tmp_path):
        for path in (deck_config.RESULTS_PLOT_PATH, deck_config.HOUR_EFFECT_PLOT_PATH):
            _save_png(path)
        out = build_deck(deck_config, output_path=tmp_path / "custom.pptx")
        assert out == tmp_path / "custom.pptx"

        slides = list(Presentation(str(out)).slides)
        assert len(slides) == 9
        assert "Model comparison" in _slide_texts(slides[-1])
        pictures = [s for s in slides[-1].shapes if s.shape_type == MSO_SHAPE_TYPE.PICTURE]
        assert len(pictures) == 1
