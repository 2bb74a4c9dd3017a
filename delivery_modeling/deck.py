"""Renders the delivery-time modeling talk as a PowerPoint deck."""

from dataclasses import dataclass
from pathlib import Path

import pandas as pd
from pptx import Presentation
from pptx.dml.color import RGBColor
from pptx.enum.shapes import MSO_AUTO_SHAPE_TYPE
from pptx.util import Inches, Pt

from delivery_modeling.config import Config

TITLE_BAR = RGBColor(28, 45, 64)
TEXT = RGBColor(28, 38, 48)
MUTED = RGBColor(91, 103, 113)
ACCENT = RGBColor(71, 138, 96)
CODE_BG = RGBColor(242, 238, 230)

FONT_BODY = "Calibri"
FONT_MONO = "Consolas"

SLIDE_W = Inches(13.333)
SLIDE_H = Inches(7.5)


@dataclass
class DeckBuilder:
    """Thin helper around a ``Presentation`` that stamps a common slide layout."""

    prs: Presentation

    def __post_init__(self) -> None:
        self.slide_no = 0

    def new_slide(self, title: str, notes: str | None = None):
        self.slide_no += 1
        slide = self.prs.slides.add_slide(self.prs.slide_layouts[6])

        bar = slide.shapes.add_shape(MSO_AUTO_SHAPE_TYPE.RECTANGLE, 0, 0, self.prs.slide_width, Inches(0.95))
        bar.fill.solid()
        bar.fill.fore_color.rgb = TITLE_BAR
        bar.line.fill.background()

        box = slide.shapes.add_textbox(Inches(0.45), Inches(0.2), self.prs.slide_width - Inches(1.4), Inches(0.6))
        p = box.text_frame.paragraphs[0]
        p.text = title
        p.font.name = FONT_BODY
        p.font.size = Pt(28)
        p.font.bold = True
        p.font.color.rgb = RGBColor(255, 255, 255)

        number = slide.shapes.add_textbox(self.prs.slide_width - Inches(1.0), self.prs.slide_height - Inches(0.45),
                                          Inches(0.7), Inches(0.3))
        np_ = number.text_frame.paragraphs[0]
        np_.text = str(self.slide_no)
        np_.font.size = Pt(10)
        np_.font.color.rgb = MUTED

        if notes:
            slide.notes_slide.notes_text_frame.text = notes
        return slide

    def add_bullets(self, slide, lines, left=Inches(0.6), top=Inches(1.3), width=Inches(6.2), height=Inches(5.5)):
        """Adds a bullet list; ``lines`` holds strings or ``(level, text)`` tuples."""
        tf = slide.shapes.add_textbox(left, top, width, height).text_frame
        tf.word_wrap = True
        for i, item in enumerate(lines):
            level, text = item if isinstance(item, tuple) else (0, item)
            p = tf.paragraphs[0] if i == 0 else tf.add_paragraph()
            p.text = ("• " if level == 0 else "– ") + text
            p.level = level
            p.font.name = FONT_BODY
            p.font.size = Pt(20 if level == 0 else 16)
            p.font.color.rgb = TEXT if level == 0 else MUTED
            p.space_after = Pt(8)

    def add_code(self, slide, code: str, left=Inches(7.0), top=Inches(1.3), width=Inches(5.8), height=Inches(5.4)):
        panel = slide.shapes.add_shape(MSO_AUTO_SHAPE_TYPE.RECTANGLE, left, top, width, height)
        panel.fill.solid()
        panel.fill.fore_color.rgb = CODE_BG
        panel.line.color.rgb = ACCENT

        tf = slide.shapes.add_textbox(left + Inches(0.15), top + Inches(0.1), width - Inches(0.3),
                                      height - Inches(0.2)).text_frame
        tf.word_wrap = True
        for i, line in enumerate(code.strip("\n").splitlines()):
            p = tf.paragraphs[0] if i == 0 else tf.add_paragraph()
            p.text = line
            p.font.name = FONT_MONO
            p.font.size = Pt(13)
            p.font.color.rgb = TEXT

    def add_image(self, slide, path: Path, left=Inches(0.6), top=Inches(1.2), height=Inches(5.8)):
        slide.shapes.add_picture(str(path), left, top, height=height)

    def add_table(self, slide, df: pd.DataFrame, left=Inches(0.6), top=Inches(1.3), width=Inches(12.0)):
        rows, cols = len(df) + 1, len(df.columns)
        table = slide.shapes.add_table(rows, cols, left, top, width, Inches(0.4) * rows).table
        for j, col in enumerate(df.columns):
            table.cell(0, j).text = str(col)
        for i, (_, row) in enumerate(df.iterrows(), start=1):
            for j, value in enumerate(row):
                table.cell(i, j).text = f"{value:.4f}" if isinstance(value, float) else str(value)
        for cell in (table.cell(i, j) for i in range(rows) for j in range(cols)):
            for p in cell.text_frame.paragraphs:
                p.font.size = Pt(14)
                p.font.name = FONT_BODY


def _results_table(config: Config, results: pd.DataFrame | None) -> pd.DataFrame | None:
    if results is None and Path(config.SUMMARY_REPORT_PATH).exists():
        results = pd.read_csv(config.SUMMARY_REPORT_PATH)
    if results is None or results.empty:
        return None
    columns = [c for c in ["model", "score_cv", "rmse_test", "rsq_test", "mae_test"] if c in results.columns]
    return results[columns].sort_values(columns[-1] if "rmse_test" not in columns else "rmse_test")


def build_deck(config: Config, results: pd.DataFrame | None = None, output_path: str | Path | None = None) -> Path:
    """
    Renders the talk: the deliveries data, splitting, the recipe, model
    specifications, workflows, resampling and tuning, and the final results.

    Plots written by the training pipeline are embedded when they exist.

    Args:
        config: Configuration object
        results: Test-set summary frame; read from ``SUMMARY_REPORT_PATH`` when omitted
        output_path: Where to write the ``.pptx``; defaults to ``Config.DECK_PATH``

    Returns:
        Path: The written deck.
    """
    output_path = Path(output_path) if output_path is not None else Path(config.DECK_PATH)
    prs = Presentation()
    prs.slide_width = SLIDE_W
    prs.slide_height = SLIDE_H
    deck = DeckBuilder(prs)
    target = config.TARGET_COLUMN

    slide = deck.new_slide(
        "Tidy modeling of delivery times",
        notes="Introduce the problem: predicting how long a restaurant delivery takes from the order time, "
              "the day, the distance and the items ordered.",
    )
    deck.add_bullets(slide, [
        "One consistent interface for splitting, preprocessing, models and tuning",
        "Example: restaurant deliveries",
        (1, f"Outcome: {target} (minutes)"),
        (1, f"Predictors: {config.HOUR_COLUMN}, {config.DAY_COLUMN}, {config.DISTANCE_COLUMN}, "
            f"{len(config.ITEM_COLUMNS)} item counts"),
    ], width=Inches(12.0))

    slide = deck.new_slide(
        "The data",
        notes="Delivery time has a strong non-linear pattern over the day, with lunch and dinner rushes "
              "that differ by day of the week.",
    )
    if Path(config.HOUR_EFFECT_PLOT_PATH).exists():
        deck.add_image(slide, config.HOUR_EFFECT_PLOT_PATH)
    else:
        deck.add_bullets(slide, [
            "Order hour is a decimal time of day",
            "Day of week is an ordered factor",
            "Item columns count how many of each menu item were ordered",
        ])
    deck.add_code(slide, """
from delivery_modeling.data_processing import DeliveryDataLoader

deliveries = DeliveryDataLoader(Config).load()
deliveries.head()
""", left=Inches(7.8), width=Inches(5.0))

    train_prop, val_prop = config.SPLIT_PROPS
    slide = deck.new_slide(
        "Spending the data budget",
        notes="Stratifying on the outcome keeps the distribution of delivery times similar in every partition. "
              "The test set is only touched once, at the very end.",
    )
    deck.add_bullets(slide, [
        f"Three-way split: {train_prop:.0%} training, {val_prop:.0%} validation, "
        f"{1 - train_prop - val_prop:.0%} test",
        (1, f"Stratified on {target} quantiles"),
        "Resampling happens inside the training data",
        (1, "A single validation set, or V-fold cross-validation"),
    ])
    deck.add_code(slide, f"""
split = initial_validation_split(
    deliveries, prop=({train_prop}, {val_prop}),
    strata="{target}")
train = split.training()
val_set = validation_set(split)
folds = vfold_cv(train, v={config.CV_FOLDS}, strata="{target}")
""")

    slide = deck.new_slide(
        "Feature engineering with a recipe",
        notes="A recipe is declared against column selectors, estimated on the training data, and applied "
              "unchanged to new data. Spline degrees of freedom can be tuned like any model parameter.",
    )
    deck.add_bullets(slide, [
        "Steps are declared first, estimated later",
        "Day of week becomes indicator columns",
        "Zero-variance columns are dropped",
        "Natural splines capture the hour effect",
        "Hour x day interactions let the rushes differ by day",
    ])
    deck.add_code(slide, f"""
rec = (
    Recipe(train, outcome="{target}")
    .step_dummy(all_factor_predictors())
    .step_zv(all_predictors())
    .step_normalize(all_numeric_predictors())
    .step_spline_natural("{config.HOUR_COLUMN}", deg_free=tune())
    .step_interact(terms=(starts_with("{config.HOUR_COLUMN}_"),
                          starts_with("{config.DAY_COLUMN}_")))
)
""")

    slide = deck.new_slide(
        "Specifying models",
        notes="The model type, its main arguments and the computational engine are separate choices. "
              "Argument names are the same whatever engine fits the model.",
    )
    families = [f"{name}: {info['model']} / {info['engine']}" for name, info in config.MODEL_FAMILIES.items()]
    deck.add_bullets(slide, ["Model type + engine + mode"] + [(1, f) for f in families])
    deck.add_code(slide, """
lm_spec = linear_reg()

cubist_spec = cubist_rules(
    committees=tune(),
    neighbors=tune(),
    max_rules=tune(),
).set_engine("cubist")
""")

    slide = deck.new_slide(
        "Workflows",
        notes="A workflow bundles preprocessing and model so that the recipe is always re-estimated "
              "inside each resample, preventing information leaking from the assessment rows.",
    )
    deck.add_bullets(slide, [
        "Recipe + model in one object",
        "Fitting a workflow preps the recipe and fits the model",
        "Predictions apply the same preprocessing to new data",
    ])
    deck.add_code(slide, """
lm_wflow = (
    Workflow()
    .add_recipe(rec)
    .add_model(lm_spec)
)
lm_fit = finalize_workflow(lm_wflow, {"deg_free": 10}).fit(train)
lm_fit.predict(split.validation())
""")

    slide = deck.new_slide(
        "Resampling and tuning",
        notes="Every candidate and resample pair is an independent fit, so the work is spread over the "
              "registered cores. The best candidate is then fitted once on the training set and scored on "
              "the test set.",
    )
    deck.add_bullets(slide, [
        "fit_resamples() estimates performance for one configuration",
        "tune_grid() evaluates a space-filling grid of candidates",
        (1, "Independent fits run in parallel"),
        "Optuna search for larger spaces",
        "select_best() or select_by_one_std_err(), then last_fit()",
    ])
    deck.add_code(slide, f"""
register_parallel_backend(cores=4)

cubist_res = tune_grid(
    cubist_wflow, val_set, grid={config.GRID_SIZE})
cubist_res.show_best("rmse")

best = cubist_res.select_best("rmse")
final = last_fit(
    finalize_workflow(cubist_wflow, best), split)
final.collect_metrics()
""")

    table = _results_table(config, results)
    slide = deck.new_slide(
        "Results on the test set",
        notes="Test-set metrics for every champion; the test partition was used only for this comparison.",
    )
    if table is not None:
        deck.add_table(slide, table)
    else:
        deck.add_bullets(slide, ["Run the training pipeline to fill in the final results"], width=Inches(12.0))

    plots = [p for p in [config.RESULTS_PLOT_PATH, config.PREDICTIONS_PLOT_PATH] if Path(p).exists()]
    if plots:
        slide = deck.new_slide("Model comparison", notes="Left: test-set RMSE by model. Right: observed versus "
                                                         "predicted for the best model.")
        for i, path in enumerate(plots):
            deck.add_image(slide, path, left=Inches(0.4 + 6.5 * i), height=Inches(5.6))

    output_path.parent.mkdir(parents=True, exist_ok=True)
    prs.save(str(output_path))
    print(f"Deck with {deck.slide_no} slides saved to {output_path}")
    return output_path
