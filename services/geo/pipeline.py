"""
Proximity Pipeline

One parameterised pipeline for "which of X and Y is closer to Z", run with
the data owner's session on one side and ciphertext-only computation on the
other.

Key Features:
- Every variant (compare-by-a, compare-by-distance, reduced series degree,
  longitude convention) is a PipelineConfig, not a separate code path
- Static bit-width and depth analysis before keys are generated
- Per-stage timings under the labels the CLI prints
- Optional thread pool for the two independent pair evaluations
- Any failure inside the circuit aborts the request with one error

Example:
    ```python
    pipeline = ProximityPipeline(PipelineConfig())
    report = pipeline.compare(
        GeoPoint("Basel", 47.5596, 7.5886),
        GeoPoint("Lugano", 46.0037, 8.9511),
        GeoPoint("Zurich", 47.3769, 8.5417),
    )
    print(report.closer_label)   # Basel
    ```
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from config.pipeline import CompareMode, PipelineConfig
from services.errors import ConfigError, EncryptionFailure, GeoProximityError
from services.fhe.session import CircuitStats, EncryptedUInt, FheSession
from .budget import CircuitBounds, CircuitBudget
from .codec import EncodedPoint, FixedPointCodec, GeoPoint
from .comparator import ComparisonResult, ProximityComparator
from .delta import DeltaEngine
from .haversine import HaversineTermCombiner
from .oracle import PlaintextOracle
from .polynomial import PolynomialApproximator

logger = logging.getLogger(__name__)

KEYGEN_LABEL = "CLIENT: key generation (excluded)"
ENCRYPT_LABEL = "client:step1:precompute+encrypt:{}"
DELTAS_LABEL = "server:step2:compute_deltas"
SERIES_LABEL = "server:step3:poly_sin2_half"
COMBINE_LABEL = "server:step3:combine_a"
ARCSIN_LABEL = "server:step4:poly_arcsin_sqrt"
RADIUS_LABEL = "server:step5:multiply_radius"
PAIR_LABEL = "server:step3:compute_a_{}-{}"
COMPARE_LABEL = "server:final:compare"
DECRYPT_LABEL = "CLIENT: decrypt compare bit"
SERVER_COMPUTE_LABEL = "SERVER: total compute"
CLIENT_TOTAL_LABEL = "CLIENT: TOTAL"
SERVER_TOTAL_LABEL = "SERVER: TOTAL"


@dataclass
class StageTiming:
    """Wall-clock duration of one named stage."""
    label: str
    seconds: float

    def format(self) -> str:
        return f"{self.label} = {self.seconds:.6f} s"


@dataclass
class Baseline:
    """Plaintext reference distances for the same request."""
    xz_km: float
    yz_km: float
    xz_small_angle_km: float
    yz_small_angle_km: float
    x_closer: bool
    seconds: float


@dataclass
class ComparisonReport:
    """Decrypted outcome of one comparison request."""
    x_label: str
    y_label: str
    z_label: str
    x_closer: bool
    timings: List[StageTiming]
    stats: CircuitStats
    config: PipelineConfig
    baseline: Optional[Baseline] = None

    @property
    def closer_label(self) -> str:
        return self.x_label if self.x_closer else self.y_label

    @property
    def agrees_with_baseline(self) -> Optional[bool]:
        if self.baseline is None:
            return None
        return self.baseline.x_closer == self.x_closer

    def timing(self, label: str) -> Optional[float]:
        for stage in self.timings:
            if stage.label == label:
                return stage.seconds
        return None

    def timing_lines(self) -> List[str]:
        return [stage.format() for stage in self.timings]

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "x": self.x_label,
            "y": self.y_label,
            "z": self.z_label,
            "x_closer": self.x_closer,
            "closer": self.closer_label,
            "timings": {stage.label: stage.seconds for stage in self.timings},
            "stats": self.stats.to_dict(),
            "config": self.config.to_dict(),
        }
        if self.baseline is not None:
            result["baseline"] = {
                "xz_km": self.baseline.xz_km,
                "yz_km": self.baseline.yz_km,
                "x_closer": self.baseline.x_closer,
            }
        return result


class _StageClock:
    """Accumulates stage durations; shared by both pair evaluations."""

    def __init__(self):
        self._totals: Dict[str, float] = {}
        self._lock = threading.Lock()

    @contextmanager
    def measure(self, label: str):
        start = time.perf_counter()
        try:
            yield
        finally:
            self.add(label, time.perf_counter() - start)

    def add(self, label: str, seconds: float) -> None:
        with self._lock:
            self._totals[label] = self._totals.get(label, 0.0) + seconds

    def get(self, label: str) -> float:
        return self._totals.get(label, 0.0)

    def __contains__(self, label: str) -> bool:
        return label in self._totals


class ProximityPipeline:
    """
    Encrypted closer-of-two comparison.

    The pipeline owns a session unless one is passed in; a passed session is
    left open for the caller to close.
    """

    def __init__(self, config: Optional[PipelineConfig] = None, session: Optional[FheSession] = None):
        """
        Args:
            config: Circuit configuration (defaults to PipelineConfig())
            session: Existing session of the data owner

        Raises:
            ConfigError: if the configuration has errors
            EncodingOverflow: if the circuit does not fit the integer width
        """
        self.config = config or PipelineConfig()
        self._check_config()
        if session is not None and session.width != self.config.width:
            raise ConfigError(
                f"Session width {session.width} does not match configured width {self.config.width}"
            )

        self.codec = FixedPointCodec(self.config.scale, self.config.width, self.config.longitude_convention)
        self.bounds: CircuitBounds = CircuitBudget().analyse(self.config)
        self.approximator = PolynomialApproximator(
            self.config.scale, self.config.series_degree, self.config.arcsin_terms
        )
        self.delta_engine = DeltaEngine(self.codec, self.config.fold_antimeridian)
        self.combiner = HaversineTermCombiner(self.delta_engine, self.approximator, self.config.earth_radius_km)
        self.comparator = ProximityComparator()
        self.oracle = PlaintextOracle(self.config.earth_radius_km)
        self._session = session

        logger.info(
            f"ProximityPipeline initialized: variant={self.config.variant_name}, "
            f"backend={self.config.backend.value}, bits={self.bounds.required_bits}/{self.config.width}, "
            f"depth={self.bounds.max_depth}"
        )

    def _check_config(self) -> None:
        issues = self.config.validate()
        errors = [issue for issue in issues if issue.startswith("ERROR")]
        for issue in issues:
            if not issue.startswith("ERROR"):
                logger.warning(issue)
        if errors:
            raise ConfigError("; ".join(errors))

    def open_session(self) -> FheSession:
        """Create a session matching this pipeline's backend and width."""
        return FheSession(self.config.backend, self.config.width)

    # Server side: ciphertext operations only

    def pair_term(self, point: EncodedPoint, reference: EncodedPoint, clock: _StageClock) -> EncryptedUInt:
        """The compared term for one candidate: a, or the distance in full mode."""
        with clock.measure(DELTAS_LABEL):
            dlat, dlon = self.delta_engine.deltas(point, reference)

        with clock.measure(SERIES_LABEL):
            sin2_lat = self.approximator.evaluate(dlat)
            sin2_lon = self.approximator.evaluate(dlon)

        with clock.measure(COMBINE_LABEL):
            a = self.combiner.a_term(sin2_lat, sin2_lon, point.cos_lat, reference.cos_lat)

        if self.config.compare_mode == CompareMode.A_TERM:
            return a

        with clock.measure(ARCSIN_LABEL):
            angle = self.combiner.angular_distance(a)

        with clock.measure(RADIUS_LABEL):
            return angle * (2 * self.config.earth_radius_km)

    def evaluate(
        self,
        x: EncodedPoint,
        y: EncodedPoint,
        z: EncodedPoint,
        clock: Optional[_StageClock] = None,
    ) -> ComparisonResult:
        """Run the circuit on encrypted points; nothing here is decrypted."""
        clock = clock or _StageClock()
        pairs = [(x, z), (y, z)]

        def run(pair: Tuple[EncodedPoint, EncodedPoint]) -> EncryptedUInt:
            point, reference = pair
            with clock.measure(PAIR_LABEL.format(point.name, reference.name)):
                return self.pair_term(point, reference, clock)

        if self.config.parallel:
            with ThreadPoolExecutor(max_workers=2, thread_name_prefix="geoprox-pair") as pool:
                term_x, term_y = pool.map(run, pairs)
        else:
            term_x, term_y = (run(pair) for pair in pairs)

        with clock.measure(COMPARE_LABEL):
            return self.comparator.compare(term_x, term_y)

    # Full request

    def compare(self, x: GeoPoint, y: GeoPoint, z: GeoPoint) -> ComparisonReport:
        """
        Encrypt, evaluate and decrypt one request.

        Returns:
            ComparisonReport with the decrypted outcome and stage timings

        Raises:
            EncodingOverflow: if an encoded coordinate does not fit
            EncryptionFailure: on any backend or circuit failure
        """
        labels = [
            x.label or "X",
            y.label or "Y",
            z.label or "Z",
        ]
        if len(set(labels)) < len(labels):
            # Timing entries are keyed by label
            logger.warning(f"Duplicate point labels {labels}; reporting as X, Y and Z")
            labels = ["X", "Y", "Z"]
        points = [
            GeoPoint(label, p.latitude, p.longitude)
            for label, p in zip(labels, (x, y, z))
        ]

        owns_session = self._session is None
        start = time.perf_counter()
        session = self._session or self.open_session()
        keygen_seconds = time.perf_counter() - start if owns_session else 0.0

        timings = [StageTiming(KEYGEN_LABEL, keygen_seconds)]
        try:
            session.reset_stats()

            encoded = []
            client_seconds = 0.0
            for point in points:
                start = time.perf_counter()
                encoded.append(self.codec.encrypt(point, session))
                elapsed = time.perf_counter() - start
                client_seconds += elapsed
                timings.append(StageTiming(ENCRYPT_LABEL.format(point.name), elapsed))

            clock = _StageClock()
            start = time.perf_counter()
            try:
                result = self.evaluate(*encoded, clock=clock)
            except GeoProximityError:
                raise
            except Exception as e:
                raise EncryptionFailure(f"Circuit evaluation failed: {e}") from e
            server_seconds = time.perf_counter() - start

            timings.append(StageTiming(SERVER_COMPUTE_LABEL, server_seconds))
            for label in self._server_labels(labels):
                if label in clock:
                    timings.append(StageTiming(label, clock.get(label)))

            start = time.perf_counter()
            x_closer = result.decrypt(session)
            decrypt_seconds = time.perf_counter() - start
            client_seconds += decrypt_seconds

            timings.append(StageTiming(DECRYPT_LABEL, decrypt_seconds))
            timings.append(StageTiming(CLIENT_TOTAL_LABEL, client_seconds))
            timings.append(StageTiming(SERVER_TOTAL_LABEL, server_seconds))

            stats = session.stats()
        finally:
            if owns_session:
                session.close()

        report = ComparisonReport(
            x_label=labels[0],
            y_label=labels[1],
            z_label=labels[2],
            x_closer=x_closer,
            timings=timings,
            stats=stats,
            config=self.config,
            baseline=self.baseline(*points) if self.config.include_baseline else None,
        )

        logger.info(
            f"Comparison complete: {report.closer_label} is closer to {report.z_label} "
            f"({stats.total} ciphertext ops, depth {stats.max_depth})"
        )
        return report

    def baseline(self, x: GeoPoint, y: GeoPoint, z: GeoPoint) -> Baseline:
        start = time.perf_counter()
        xz_km = self.oracle.haversine_km(x, z)
        yz_km = self.oracle.haversine_km(y, z)
        return Baseline(
            xz_km=xz_km,
            yz_km=yz_km,
            xz_small_angle_km=self.oracle.small_angle_km(x, z),
            yz_small_angle_km=self.oracle.small_angle_km(y, z),
            x_closer=xz_km < yz_km,
            seconds=time.perf_counter() - start,
        )

    @staticmethod
    def _server_labels(labels: List[str]) -> List[str]:
        x_label, y_label, z_label = labels
        return [
            PAIR_LABEL.format(x_label, z_label),
            PAIR_LABEL.format(y_label, z_label),
            DELTAS_LABEL,
            SERIES_LABEL,
            COMBINE_LABEL,
            ARCSIN_LABEL,
            RADIUS_LABEL,
            COMPARE_LABEL,
        ]
