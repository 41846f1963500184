import subprocess

import numpy as np

NEG_INF = -np.inf


def check_graphviz_installed():
    try:
        subprocess.run(["dot", "-V"], check=True, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
        return True
    except (subprocess.CalledProcessError, FileNotFoundError):
        return False


def logaddexp(a: float, b: float) -> float:
    """log(exp(a) + exp(b)) without leaving the log domain. -inf is the zero."""
    return float(np.logaddexp(a, b))


def logsumexp(weights) -> float:
    """Log-sum of an iterable of log weights. Empty sums are -inf."""
    weights = np.fromiter(weights, dtype=float)
    if weights.size == 0:
        return NEG_INF
    return float(np.logaddexp.reduce(weights))
