"""
Tests for the Chebyshev pseudospectral discretization.

Validates:
- Transform plan construction and immutability
- Forward/backward transform round trip and known coefficients
- Coefficient-space derivative exactness on polynomials
- Multi-element grids, weights and the metric factor
- Interpolation and its constant extrapolation
"""

import pytest
import jax.numpy as jnp
import numpy as np
from pydantic import ValidationError
from scipy.fft import dct

from moment_kinetics.chebyshev import (
    ChebyshevInfo,
    chebyshev_backward_transform,
    chebyshev_derivative,
    chebyshev_forward_transform,
    chebyshev_moments,
    chebyshev_points,
    chebyshev_spectral_derivative,
    clenshaw_curtis_element_weights,
    interpolate_to_grid_1d,
    setup_chebyshev_pseudospectral,
    update_df_chebyshev,
    update_fcheby,
)
from moment_kinetics.coordinates import Coordinate
from moment_kinetics.errors import BoundsError


def element_points(ngrid):
    """Element points in increasing order, z from -1 to 1."""
    return chebyshev_points(ngrid)[::-1]


class TestChebyshevInfo:
    """Test suite for the transform plan."""

    def test_create_shapes(self):
        """Index maps have the lengths of the extended and element grids."""
        info = ChebyshevInfo.create(ngrid=9, nelement=4)

        assert info.ngrid == 9
        assert info.nelement == 4
        assert info.extension_index.shape == (16,)
        assert info.extraction_index.shape == (9,)
        assert info.normalisation.shape == (9,)

    def test_normalisation(self):
        """Endpoint modes get half the weight of interior modes."""
        info = ChebyshevInfo.create(ngrid=5, nelement=1)

        assert jnp.isclose(info.normalisation[0], 0.125)
        assert jnp.isclose(info.normalisation[-1], 0.125)
        assert jnp.allclose(info.normalisation[1:-1], 0.25)

    def test_rejects_single_point(self):
        """A transform needs at least two points per element."""
        with pytest.raises(ValueError, match="ngrid >= 2"):
            ChebyshevInfo.create(ngrid=1, nelement=1)

    def test_immutability(self):
        """ChebyshevInfo is frozen, so one plan can be shared between workers."""
        info = ChebyshevInfo.create(ngrid=5, nelement=2)

        with pytest.raises(ValidationError):
            info.ngrid = 7

    def test_setup_from_coordinate(self):
        """Plan matches the coordinate's local resolution."""
        z = Coordinate.create(name="z", ngrid=6, nelement=4, nrank=2, irank=1)
        info = setup_chebyshev_pseudospectral(z)

        assert info.ngrid == 6
        assert info.nelement == 2


class TestChebyshevPoints:
    """Test Chebyshev-Gauss-Lobatto points."""

    def test_endpoints(self):
        z = chebyshev_points(9)
        assert z[0] == 1.0
        assert z[-1] == -1.0

    def test_symmetry(self):
        """Points are antisymmetric and the odd-grid midpoint is exactly zero."""
        for n in [4, 5, 8, 9, 17]:
            z = chebyshev_points(n)
            assert jnp.allclose(z, -z[::-1], rtol=0.0, atol=1e-15)
        assert chebyshev_points(9)[4] == 0.0

    def test_matches_cosine_definition(self):
        n = 12
        j = jnp.arange(n)
        assert jnp.allclose(chebyshev_points(n), jnp.cos(jnp.pi * j / (n - 1)), atol=1e-15)


class TestTransforms:
    """Test forward and backward Chebyshev transforms."""

    @pytest.mark.parametrize("ngrid", [4, 5, 8, 9, 16, 17, 33, 64, 65])
    def test_round_trip(self, ngrid):
        """backward(forward(f)) recovers f for smooth data."""
        info = ChebyshevInfo.create(ngrid=ngrid, nelement=1)
        z = element_points(ngrid)
        f = jnp.exp(jnp.sin(3.0 * z)) + 0.1 * z**3

        recovered = chebyshev_backward_transform(chebyshev_forward_transform(f, info), info)

        assert jnp.allclose(recovered, f, rtol=1e-12, atol=1e-12)

    @pytest.mark.parametrize("k", [0, 1, 2, 3, 6])
    def test_single_mode(self, k):
        """T_k sampled on the grid transforms to the unit vector e_k."""
        ngrid = 7
        info = ChebyshevInfo.create(ngrid=ngrid, nelement=1)
        z = element_points(ngrid)
        f = jnp.cos(k * jnp.arccos(z))

        coefs = chebyshev_forward_transform(f, info)

        expected = jnp.zeros(ngrid).at[k].set(1.0)
        assert jnp.allclose(coefs, expected, atol=1e-13)

    def test_matches_type_one_dct(self):
        """The even-extension FFT is a DCT-I of the samples at cos(πj/N)."""
        ngrid = 11
        N = ngrid - 1
        info = ChebyshevInfo.create(ngrid=ngrid, nelement=1)
        z = element_points(ngrid)
        f = 1.0 / (1.5 + z)

        coefs = np.asarray(chebyshev_forward_transform(f, info))

        reference = dct(np.asarray(f)[::-1], type=1) / N
        reference[0] /= 2.0
        reference[-1] /= 2.0
        assert np.allclose(coefs, reference, atol=1e-13)

    def test_broadcast_over_trailing_axes(self):
        """A batch of columns transforms like each column separately."""
        ngrid = 9
        info = ChebyshevInfo.create(ngrid=ngrid, nelement=1)
        z = element_points(ngrid)
        batch = jnp.stack([jnp.sin(z), z**2, jnp.exp(z)], axis=1)

        coefs = chebyshev_forward_transform(batch, info)

        assert coefs.shape == (ngrid, 3)
        for j in range(3):
            assert jnp.allclose(coefs[:, j], chebyshev_forward_transform(batch[:, j], info))

    def test_wrong_length_raises(self):
        info = ChebyshevInfo.create(ngrid=5, nelement=1)
        with pytest.raises(BoundsError):
            chebyshev_forward_transform(jnp.zeros(6), info)
        with pytest.raises(BoundsError):
            chebyshev_backward_transform(jnp.zeros(4), info)


class TestSpectralDerivative:
    """Test the coefficient-space derivative recurrence."""

    @pytest.mark.parametrize("ngrid", [2, 3, 5, 9, 12])
    def test_polynomial_exactness(self, ngrid):
        """d/dz z^k is exact for every k <= ngrid-2."""
        info = ChebyshevInfo.create(ngrid=ngrid, nelement=1)
        z = element_points(ngrid)

        for k in range(ngrid - 1):
            f = z**k
            expected = k * z ** (k - 1) if k > 0 else jnp.zeros(ngrid)
            coefs = chebyshev_forward_transform(f, info)
            df = chebyshev_backward_transform(chebyshev_spectral_derivative(coefs), info)
            assert jnp.allclose(df, expected, atol=1e-11), f"k={k}"

    def test_known_recurrence(self):
        """T_3' = 3·T_0 + 6·T_2."""
        coefs = jnp.array([0.0, 0.0, 0.0, 1.0])
        dcoefs = chebyshev_spectral_derivative(coefs)
        assert jnp.allclose(dcoefs, jnp.array([3.0, 0.0, 6.0, 0.0]))

    def test_two_points(self):
        """Linear element: derivative is the slope coefficient."""
        dcoefs = chebyshev_spectral_derivative(jnp.array([2.0, 5.0]))
        assert jnp.allclose(dcoefs, jnp.array([5.0, 0.0]))


class TestMultiElement:
    """Test transforms and derivatives across several elements."""

    def test_quadratic_scenario(self):
        """
        f = z² on ngrid=5, nelement=2, L=2: every element holds a quadratic,
        and the derivative at the shared point z = 0 is 2·z = 0.
        """
        z = Coordinate.create(name="z", ngrid=5, nelement=2, L=2.0, bc="zero")
        info = setup_chebyshev_pseudospectral(z)
        f = z.grid**2

        fcheby = update_fcheby(f, info, z)

        assert fcheby.shape == (5, 2)
        # a quadratic has no T_3 or T_4 content
        assert jnp.allclose(fcheby[3:], 0.0, atol=1e-14)
        assert jnp.all(jnp.abs(fcheby[0]) > 1e-3)
        assert jnp.all(jnp.abs(fcheby[2]) > 1e-3)

        df2d = chebyshev_derivative(f, info, z)
        shared = z.element_indices[-1, 0]
        boundary_value = z.grid[shared]
        assert jnp.isclose(boundary_value, 0.0, atol=1e-15)
        assert jnp.isclose(df2d[-1, 0], 2.0 * boundary_value, atol=1e-10)
        assert jnp.isclose(df2d[0, 1], 2.0 * boundary_value, atol=1e-10)

    def test_element_centred_quadratic(self):
        """z² on a single element centred at 0 is 0.5·T_0 + 0.5·T_2."""
        z = Coordinate.create(name="z", ngrid=5, nelement=1, L=2.0, bc="zero")
        info = setup_chebyshev_pseudospectral(z)

        fcheby = update_fcheby(z.grid**2, info, z)

        assert jnp.allclose(fcheby[:, 0], jnp.array([0.5, 0.0, 0.5, 0.0, 0.0]), atol=1e-14)

    def test_metric_factor(self):
        """Elementwise derivative of a linear function is its physical slope."""
        z = Coordinate.create(name="z", ngrid=6, nelement=3, L=3.0, bc="zero")
        info = setup_chebyshev_pseudospectral(z)

        df2d = chebyshev_derivative(4.0 * z.grid + 1.0, info, z)

        assert df2d.shape == (6, 3)
        assert jnp.allclose(df2d, 4.0, atol=1e-12)

    def test_update_df_from_coefficients(self):
        """update_df_chebyshev on update_fcheby output equals chebyshev_derivative."""
        z = Coordinate.create(name="z", ngrid=7, nelement=4, L=1.0)
        info = setup_chebyshev_pseudospectral(z)
        f = jnp.sin(2.0 * jnp.pi * z.grid)

        df2d = update_df_chebyshev(update_fcheby(f, info, z), info, z)

        assert jnp.allclose(df2d, chebyshev_derivative(f, info, z))

    def test_spectral_convergence(self):
        """Error of d/dz sin(2πz) falls rapidly with ngrid."""
        errors = []
        for ngrid in [4, 6, 8, 10]:
            z = Coordinate.create(name="z", ngrid=ngrid, nelement=4, L=1.0)
            info = setup_chebyshev_pseudospectral(z)
            df2d = chebyshev_derivative(jnp.sin(2.0 * jnp.pi * z.grid), info, z)
            exact = 2.0 * jnp.pi * jnp.cos(2.0 * jnp.pi * z.grid[z.element_indices])
            errors.append(float(jnp.max(jnp.abs(df2d - exact))))

        assert all(later < earlier for earlier, later in zip(errors, errors[1:]))
        assert errors[-1] < 1e-4

    def test_mismatched_plan_raises(self):
        z = Coordinate.create(name="z", ngrid=5, nelement=2)
        info = ChebyshevInfo.create(ngrid=5, nelement=3)
        with pytest.raises(BoundsError, match="does not match"):
            update_fcheby(jnp.zeros(z.n), info, z)


class TestQuadrature:
    """Test Clenshaw-Curtis weights."""

    @pytest.mark.parametrize("ngrid", [2, 3, 5, 8, 9])
    def test_integrates_chebyshev_polynomials(self, ngrid):
        """Σ w_j T_i(z_j) = ∫ T_i dz for i <= ngrid-1."""
        z = chebyshev_points(ngrid)
        w = clenshaw_curtis_element_weights(ngrid)
        moments = chebyshev_moments(ngrid)
        for i in range(ngrid):
            T_i = jnp.cos(i * jnp.arccos(jnp.clip(z, -1.0, 1.0)))
            assert jnp.isclose(jnp.sum(w * T_i), moments[i], atol=1e-13), f"i={i}"

    def test_multi_element_weights(self):
        """Assembled weights integrate x² over [-L/2, L/2] exactly."""
        z = Coordinate.create(name="z", ngrid=5, nelement=4, L=2.0)
        assert jnp.isclose(jnp.sum(z.wgts), 2.0)
        assert jnp.isclose(jnp.sum(z.wgts * z.grid**2), 2.0 / 3.0)


class TestInterpolation:
    """Test interpolate_to_grid_1d."""

    @pytest.fixture
    def setup(self):
        z = Coordinate.create(name="z", ngrid=6, nelement=3, L=2.0, bc="zero")
        return z, setup_chebyshev_pseudospectral(z)

    def test_reproduces_grid_values(self, setup):
        z, info = setup
        f = jnp.cos(z.grid)
        assert jnp.allclose(interpolate_to_grid_1d(z.grid, f, z, info), f, atol=1e-13)

    def test_exact_for_low_degree_polynomial(self, setup):
        """Polynomials of degree < ngrid are reproduced between grid points."""
        z, info = setup
        f = z.grid**4 - 2.0 * z.grid
        newgrid = jnp.linspace(-0.99, 0.97, 37)

        result = interpolate_to_grid_1d(newgrid, f, z, info)

        assert jnp.allclose(result, newgrid**4 - 2.0 * newgrid, atol=1e-12)

    def test_constant_extrapolation(self, setup):
        """Points outside the grid take the boundary values exactly."""
        z, info = setup
        f = jnp.exp(z.grid)
        newgrid = jnp.array([-5.0, z.grid[0] - 1e-3, z.grid[-1] + 1e-3, 7.0])

        result = interpolate_to_grid_1d(newgrid, f, z, info)

        assert result[0] == f[0]
        assert result[1] == f[0]
        assert result[2] == f[-1]
        assert result[3] == f[-1]
