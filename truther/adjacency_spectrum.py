import os
import sys
import time
from dataclasses import dataclass
from pathlib import Path

import tyro
from torch.utils.tensorboard import SummaryWriter

from truther_utils.spectral import REFERENCE_ADJACENCY, DimensionError, SpectralError
from truther_utils.spectral.io import (
    load_matrix,
    log_final_cost,
    log_hyperparameters,
    log_optimizer_metrics,
    log_spectrum_metrics,
    print_points,
    print_spectrum,
    print_trace_point,
    print_weight_magnitudes,
    write_points,
)
from truther_utils.spectral.pipeline import run_pipeline
from truther_utils.spectral.plotting import plot_cost, plot_points


@dataclass
class Args:
    exp_name: str = os.path.basename(__file__)[: -len(".py")]
    """the name of this experiment"""
    seed: int = 1
    """seed of the generator for the initial weights"""
    neural: bool = False
    """if toggled, fit the complex linear model to the spectrum"""
    matrix_path: str = ""
    """optional whitespace-separated N×N matrix file (defaults to the 5×5 reference adjacency)"""
    output_dir: str = "."
    """directory for cost.png, vectors.png and vectors.dat"""
    log_dir: str = "runs"
    """root directory for TensorBoard runs"""

    # Algorithm specific arguments
    learning_rate: float = 0.3
    """the learning rate of the gradient descent"""
    iterations: int = 128
    """the number of gradient descent iterations"""
    num_components: int = 2
    """the number of principal components to project onto (at least 2 for plotting)"""


def main(args: Args) -> None:
    run_name = f"{args.exp_name}__{args.seed}__{int(time.time())}"
    writer = SummaryWriter(f"{args.log_dir}/{run_name}")
    log_hyperparameters(writer, vars(args))

    def on_step(point):
        print_trace_point(point)
        log_optimizer_metrics(writer, point)

    try:
        if args.num_components < 2:
            raise DimensionError(f"num_components must be at least 2 to plot x vs y, got {args.num_components}")

        matrix = load_matrix(args.matrix_path) if args.matrix_path else REFERENCE_ADJACENCY
        output_dir = Path(args.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        result = run_pipeline(
            matrix,
            seed=args.seed,
            neural=args.neural,
            learning_rate=args.learning_rate,
            iterations=args.iterations,
            k=args.num_components,
            callback=on_step,
            on_decomposition=print_spectrum,
        )

        log_spectrum_metrics(writer, result.decomposition, result.components)

        if result.fit is not None:
            plot_cost(result.fit.trace, output_dir / "cost.png")
            print_weight_magnitudes(result.fit.weights)
            log_final_cost(writer, result.fit.final_cost, len(result.fit.trace))

        print_points(result.points)
        plot_points(result.points, output_dir / "vectors.png")
        data_path = write_points(output_dir / "vectors.dat", result.points)
        print(f"projected points saved to {data_path}")
    except (SpectralError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        raise SystemExit(1) from e
    finally:
        writer.close()


if __name__ == "__main__":
    main(tyro.cli(Args))
