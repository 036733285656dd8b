import pandas as pd
import plotly.graph_objects as go

from ..layout.engine import LaidOutGraph

NODE_COLORS = {
    "input": "#d6eaf8",
    "operator": "#fdebd0",
    "output": "#d5f5e3",
}


def nodes_frame(laid_out: LaidOutGraph) -> pd.DataFrame:
    df = pd.DataFrame([n.to_dict() for n in laid_out.nodes])
    if df.empty:
        return df
    df["cx"] = df["x"] + df["width"] / 2
    df["cy"] = df["y"] + df["height"] / 2
    df["text"] = df["labels"].map("<br>".join)
    return df


def export_graph_html(laid_out: LaidOutGraph, path: str, title: str = "Model Graph"):
    if laid_out.is_empty:
        with open(path, "w") as f:
            f.write(f"<h1>{title}</h1><p>No data to display.</p>")
        return

    df = nodes_frame(laid_out)
    fig = go.Figure()

    # One trace for all edges, polylines separated by None
    xs, ys = [], []
    for edge in laid_out.edges:
        for x, y in edge.points:
            xs.append(x)
            ys.append(y)
        xs.append(None)
        ys.append(None)
    fig.add_trace(go.Scatter(
        x=xs, y=ys, mode="lines", line=dict(color="#7f8c8d", width=1),
        hoverinfo="skip", showlegend=False,
    ))

    for row in df.itertuples(index=False):
        fig.add_shape(
            type="rect",
            x0=row.x, y0=row.y, x1=row.x + row.width, y1=row.y + row.height,
            line=dict(color="#34495e", width=1),
            fillcolor=NODE_COLORS.get(row.kind, "#eeeeee"),
            layer="below",
        )

    fig.add_trace(go.Scatter(
        x=df["cx"], y=df["cy"], mode="text", text=df["text"],
        hovertext=df["name"], hoverinfo="text", showlegend=False,
    ))

    fig.update_yaxes(autorange="reversed", visible=False, scaleanchor="x")
    fig.update_xaxes(visible=False, range=[-20, laid_out.width + 20])
    fig.update_layout(
        title=title,
        height=max(500, int(laid_out.height) + 100),
        font=dict(family="Courier New, monospace", size=12),
        plot_bgcolor="white",
    )

    fig.write_html(path, include_plotlyjs="cdn", full_html=True)
