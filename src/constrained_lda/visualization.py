"""Visualization utilities for constrained LDA."""

from typing import Optional
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from constrained_lda.core import GibbsLDA


def visualize_metrics(
    model: GibbsLDA,
    metric: str = "perplexity",
    recorded_only: bool = False,
    save_path: Optional[str] = None,
) -> go.Figure:
    """
    Plot a per-iteration metric.

    Args:
        model: Sampler that has run sample().
        metric: 'perplexity' or 'log_likelihood'.
        recorded_only: Drop burn-in iterations.
        save_path: Optional path to save figure.

    Returns:
        Plotly figure.
    """
    if metric not in ("perplexity", "log_likelihood"):
        raise ValueError(f"Unknown metric: {metric}")

    df = model.metrics_frame()
    if recorded_only:
        df = df[df["recorded"]]

    fig = px.line(df, x="iteration", y=metric, markers=True)
    fig.update_layout(
        title=f"{metric.replace('_', ' ').title()} ({model.mode.name})",
        xaxis_title="Iteration",
        yaxis_title=metric,
    )

    if save_path:
        fig.write_html(save_path)

    return fig


def visualize_top_words(
    model: GibbsLDA,
    topic: int,
    n: int = 10,
    save_path: Optional[str] = None,
) -> go.Figure:
    """
    Horizontal bar chart of a topic's highest-probability words.

    Args:
        model: Initialized sampler.
        topic: Topic id.
        n: Number of words.
        save_path: Optional path to save figure.

    Returns:
        Plotly figure.
    """
    words = model.top_words_by_weight(topic, n)
    df = pd.DataFrame(words, columns=["word", "probability"])

    # plotly draws the first row at the bottom
    fig = px.bar(df.iloc[::-1], x="probability", y="word", orientation="h")
    fig.update_layout(title=f"Topic {topic}", xaxis_title="P(word | topic)", yaxis_title="")

    if save_path:
        fig.write_html(save_path)

    return fig


def visualize_doc_topics(
    model: GibbsLDA,
    save_path: Optional[str] = None,
) -> go.Figure:
    """
    Heatmap of the document-topic distribution matrix.

    Args:
        model: Initialized sampler.
        save_path: Optional path to save figure.

    Returns:
        Plotly figure.
    """
    theta = model.doc_topic_dist()
    if theta.shape[0] == 0:
        print("No documents to visualize")
        return go.Figure()

    fig = px.imshow(
        theta,
        labels={"x": "Topic", "y": "Document", "color": "P(topic | doc)"},
        aspect="auto",
        color_continuous_scale="Blues",
    )
    fig.update_layout(title="Document-topic distributions")

    if save_path:
        fig.write_html(save_path)

    return fig
