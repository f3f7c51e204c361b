import math

from django.test import SimpleTestCase

from common.utils import (
	compute_fare_breakdown,
	compute_fare_quotes,
	great_circle_distance_km,
	is_same_point,
	is_valid_coordinate,
	normalize_point,
	round_half_up,
)
from common.utils.pricing import RIDE_PRICING_RULES, TrafficModel, compute_traffic_multiplier


class RoundingTests(SimpleTestCase):
	def test_halves_round_away_from_zero(self):
		self.assertEqual(round_half_up(2.5), 3)
		self.assertEqual(round_half_up(255.5), 256)
		self.assertEqual(round_half_up(4.25, 1), 4.3)

	def test_binary_representation_is_respected(self):
		# 1.005 is stored as 1.00499999..., so it rounds down
		self.assertEqual(round_half_up(1.005, 2), 1.0)


class GeoTests(SimpleTestCase):
	def test_valid_coordinates(self):
		self.assertTrue(is_valid_coordinate({'lat': 0, 'lng': 0}))
		self.assertTrue(is_valid_coordinate((90, -180)))

	def test_invalid_coordinates(self):
		self.assertFalse(is_valid_coordinate(None))
		self.assertFalse(is_valid_coordinate({'lat': 91, 'lng': 0}))
		self.assertFalse(is_valid_coordinate({'lat': 0, 'lng': 180.5}))
		self.assertFalse(is_valid_coordinate({'lat': float('nan'), 'lng': 0}))
		self.assertFalse(is_valid_coordinate({'lat': '12', 'lng': 77}))
		self.assertFalse(is_valid_coordinate({'lat': True, 'lng': 77}))

	def test_distance_one_degree_latitude(self):
		distance = great_circle_distance_km({'lat': 0, 'lng': 0}, {'lat': 1, 'lng': 0})
		self.assertAlmostEqual(distance, 6371 * math.pi / 180, places=6)

	def test_distance_is_symmetric_and_zero_for_same_point(self):
		a = {'lat': 12.9716, 'lng': 77.5946}
		b = {'lat': 13.0827, 'lng': 80.2707}
		self.assertAlmostEqual(great_circle_distance_km(a, b), great_circle_distance_km(b, a))
		self.assertEqual(great_circle_distance_km(a, a), 0)

	def test_distance_unmeasurable_for_bad_input(self):
		self.assertIsNone(great_circle_distance_km({'lat': None, 'lng': 1}, {'lat': 0, 'lng': 0}))
		self.assertIsNone(great_circle_distance_km({'lat': 0, 'lng': 0}, None))

	def test_normalize_point(self):
		self.assertEqual(
			normalize_point({'address': '  MG Road ', 'lat': '12.5', 'lng': 'x'}),
			{'address': 'MG Road', 'lat': 12.5, 'lng': None},
		)
		self.assertEqual(normalize_point(None), {'address': '', 'lat': None, 'lng': None})

	def test_same_point_tolerance(self):
		a = {'lat': 12.0, 'lng': 77.0}
		self.assertTrue(is_same_point(a, {'lat': 12.00005, 'lng': 77.00005}))
		self.assertFalse(is_same_point(a, {'lat': 12.0002, 'lng': 77.0}))


class FareTests(SimpleTestCase):
	def test_economy_golden_vector(self):
		fare = compute_fare_breakdown('economy', 10, 25)

		self.assertEqual(fare['traffic_multiplier'], 1.46)
		self.assertEqual(fare['base_fare'], 35)
		self.assertEqual(fare['distance_fare'], 110)
		self.assertEqual(fare['time_fare'], 30)
		self.assertEqual(fare['subtotal'], 175.0)
		self.assertEqual(fare['traffic_charge'], 80.5)
		self.assertEqual(fare['total'], 256)

	def test_addon_is_added_to_total(self):
		base = compute_fare_breakdown('economy', 10, 25)
		with_addon = compute_fare_breakdown('economy', 10, 25, rider_addon=40)
		self.assertEqual(with_addon['total'], base['total'] + 40)
		self.assertEqual(with_addon['rider_price_addon'], 40)

	def test_quotes_are_deterministic(self):
		self.assertEqual(compute_fare_quotes(7.3, 19, 10), compute_fare_quotes(7.3, 19, 10))

	def test_one_quote_per_category_and_ordered_by_tier(self):
		quotes = compute_fare_quotes(5, 15)
		self.assertEqual([q['category'] for q in quotes], list(RIDE_PRICING_RULES))
		totals = [q['total'] for q in quotes]
		self.assertEqual(totals, sorted(totals))

	def test_bad_inputs_fall_back_to_defaults(self):
		fare = compute_fare_breakdown('economy', -4, 'abc', rider_addon=-10)
		self.assertEqual(fare['distance_km'], 1)
		self.assertEqual(fare['duration_min'], 5)
		self.assertEqual(fare['rider_price_addon'], 0)

	def test_unknown_category_uses_economy_rates(self):
		self.assertEqual(
			compute_fare_breakdown('limo', 10, 25)['total'],
			compute_fare_breakdown('economy', 10, 25)['total'],
		)

	def test_totals_are_non_negative_integers(self):
		for category in RIDE_PRICING_RULES:
			for distance, duration in [(0.1, 0.2), (1, 1), (50, 400), (300, 30)]:
				total = compute_fare_breakdown(category, distance, duration)['total']
				self.assertIsInstance(total, int)
				self.assertGreaterEqual(total, 0)

	def test_multiplier_is_clamped(self):
		self.assertEqual(compute_traffic_multiplier(100, 1), 0.9)
		self.assertEqual(compute_traffic_multiplier(1, 600), 2.2)

	def test_short_trips_use_minimum_free_flow(self):
		# 0.5 km at 35 km/h is under a minute; free-flow is floored at 3 minutes
		self.assertEqual(compute_traffic_multiplier(0.5, 3), 1.0)

	def test_custom_traffic_model(self):
		traffic = TrafficModel(max_multiplier=1.2)
		self.assertEqual(compute_fare_breakdown('economy', 1, 600, traffic=traffic)['traffic_multiplier'], 1.2)
