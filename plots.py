# plots.py
"""
Co-occurrence heatmaps before and after repair.
"""

import os
import numpy as np
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import seaborn as sns

from design import BlockDesign
from scoring import cooccurrence_matrix, lower_triangle_variance


def plot_cooccurrence_heatmaps(before: BlockDesign, after: BlockDesign, output_path: str) -> str:
    """
    Save side-by-side heatmaps of pairwise co-occurrence counts.

    The diagonal (treatment frequencies) is masked so the color scale shows
    pairwise balance only.
    """
    folder = os.path.dirname(output_path)
    if folder:
        os.makedirs(folder, exist_ok=True)

    matrices = [cooccurrence_matrix(before), cooccurrence_matrix(after)]
    vmax = max(int(m[~np.eye(m.shape[0], dtype=bool)].max()) for m in matrices)
    labels = list(range(1, before.n_treatments + 1))

    sns.set_style("white")
    fig, axes = plt.subplots(1, 2, figsize=(16, 7))
    for ax, counts, title in zip(axes, matrices, ["Initial design", "Repaired design"]):
        mask = np.eye(counts.shape[0], dtype=bool)
        sns.heatmap(counts, mask=mask, cmap="viridis", vmin=0, vmax=vmax,
                    xticklabels=labels, yticklabels=labels, square=True, ax=ax,
                    cbar_kws={"label": "blocks together"})
        ax.set_title(f"{title} (variance {lower_triangle_variance(counts):.4f})")
        ax.set_xlabel("Treatment")
        ax.set_ylabel("Treatment")

    plt.tight_layout()
    fig.savefig(output_path, dpi=150)
    plt.close(fig)
    return output_path
