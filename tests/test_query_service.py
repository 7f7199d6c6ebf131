# tests/test_query_service.py
import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from poisearch.errors import DataFetchError, DataValidationError
from poisearch.models import (
    ErrorResult,
    GroupedResult,
    ProximityQuery,
    SimpleQuery,
    SuccessResult,
    SuggestionsResult,
    TypesListResult,
)
from poisearch.nlp.analyzers import RuleBasedAnalyzer
from poisearch.nlp.extractor import IntentExtractor, location_terms
from poisearch.search.query_service import QueryService
from poisearch.search.repository import PoiRepository
from conftest import poi_dict
from test_utils import print_test_name, print_test_result


def service_for(data, threshold=1.5, timeout_ms=3000):
    source = MagicMock()
    source.load = AsyncMock(return_value=data)
    repo = PoiRepository(source)
    return QueryService(
        repository=repo,
        extractor=IntentExtractor(
            RuleBasedAnalyzer(), repo,
            ignored_terms=location_terms("Testville", "Testville, TS"),
        ),
        threshold_miles=threshold,
        timeout_ms=timeout_ms,
        city="Testville",
        display_name="Testville, TS",
        enable_metrics=False,
    )


PARK_AND_RESTAURANT = {
    "supportedTypes": ["park", "restaurant"],
    "pois": [
        poi_dict("p1", "park", 0.0, 0.0, name="A"),
        poi_dict("r1", "restaurant", 0.0, 0.01, name="B"),
    ],
}


@pytest.mark.asyncio
class TestScenarios:

    async def test_proximity_within_threshold(self):
        test_name = "test_proximity_within_threshold"
        print_test_name(test_name)
        try:
            result = await service_for(PARK_AND_RESTAURANT).process_query(
                "parks with nearby restaurants"
            )
            assert isinstance(result, GroupedResult)
            assert result.target_type == "park"
            assert result.nearby_type == "restaurant"
            assert result.threshold_miles == 1.5
            assert len(result.groups) == 1
            assert result.groups[0].poi.name == "A"
            assert result.groups[0].nearby[0].poi.name == "B"
            assert result.groups[0].nearby[0].distance_miles == pytest.approx(0.69, abs=0.01)
            print_test_result(test_name, passed=True)
        except Exception as e:
            print_test_result(test_name, passed=False)
            raise e

    async def test_proximity_outside_threshold_suggests(self):
        result = await service_for(PARK_AND_RESTAURANT, threshold=0.5).process_query(
            "parks with nearby restaurants"
        )
        assert isinstance(result, SuggestionsResult)
        assert "park" in result.message
        assert "restaurant" in result.message
        assert "0.5 miles" in result.message
        assert result.message == (
            "No parks found with restaurants within 0.5 miles in Testville, TS."
        )

    async def test_empty_query_suggests_without_extraction(self, query_service, mock_source):
        with patch.object(query_service.extractor, "analyze", new_callable=AsyncMock) as analyze:
            result = await query_service.process_query("")
        assert isinstance(result, SuggestionsResult)
        assert result.message == "Please enter a query to search for POIs."
        assert result.examples
        analyze.assert_not_called()
        mock_source.load.assert_not_called()

    async def test_whitespace_query_suggests(self, query_service):
        result = await query_service.process_query("   ")
        assert isinstance(result, SuggestionsResult)

    async def test_analyzer_not_ready_is_initializing_error(self, query_service):
        analyzer = MagicMock()
        analyzer.ready.return_value = False
        analyzer.extract_phrase = AsyncMock()
        query_service.extractor.analyzer = analyzer

        result = await query_service.process_query("parks")

        assert result == ErrorResult(
            message="AI service is still initializing. Please wait a moment and try again."
        )
        analyzer.extract_phrase.assert_not_called()

    async def test_type_list(self, query_service, sample_dataset):
        result = await query_service.process_query("what types are supported?")
        assert result == TypesListResult(types=sample_dataset["supportedTypes"])

    async def test_unrecognized_suggests_examples_from_first_three_types(self, query_service):
        result = await query_service.process_query("weather tomorrow")
        assert isinstance(result, SuggestionsResult)
        assert result.message == "I couldn't identify any valid POI types in your query."
        assert result.examples[0] == 'Try: "Find park in Testville"'
        assert result.examples[1] == 'Try: "Show me restaurant"'
        assert result.examples[2] == 'Try: "Where are the museum?"'
        assert result.examples[-1] == 'Or ask: "What types are supported?"'


@pytest.mark.asyncio
class TestSimpleQueries:

    async def test_success(self, query_service):
        result = await query_service.process_query("show me museums")
        assert isinstance(result, SuccessResult)
        assert [p.id for p in result.pois] == ["m1"]

    async def test_attribute_filter_applied(self, query_service):
        result = await query_service.process_query("italian restaurants")
        assert [p.id for p in result.pois] == ["r2"]

    async def test_attribute_filter_skipped_when_no_poi_has_attributes(self, query_service):
        result = await query_service.process_query("quiet parks")
        assert isinstance(result, SuccessResult)
        assert [p.id for p in result.pois] == ["p1"]

    async def test_attribute_filter_with_no_match_suggests(self, query_service):
        result = await query_service.process_query("mexican restaurants")
        assert isinstance(result, SuggestionsResult)
        assert result.message == "No restaurant found in Testville, TS."

    async def test_no_poi_of_type_suggests(self):
        data = {"supportedTypes": ["park", "zoo"], "pois": [poi_dict("p1", "park", 0.0, 0.0)]}
        result = await service_for(data).process_query("zoos")
        assert isinstance(result, SuggestionsResult)
        assert result.message == "No zoo found in Testville, TS."

    async def test_multiword_type_in_no_result_message(self):
        data = {"supportedTypes": ["park", "coffee_shop"], "pois": [poi_dict("p1", "park", 0.0, 0.0)]}
        result = await service_for(data).process_query("coffee shops")
        assert isinstance(result, SuggestionsResult)
        assert result.message == "No coffee shop found in Testville, TS."

    async def test_city_name_is_not_an_attribute(self, query_service):
        test_name = "test_city_name_is_not_an_attribute"
        print_test_name(test_name)
        try:
            result = await query_service.process_query("Find restaurants in Testville")
            assert result.type == "success"
            assert [p.id for p in result.pois] == ["r1", "r2"]
            print_test_result(test_name, passed=True)
        except Exception as e:
            print_test_result(test_name, passed=False)
            raise e

    async def test_filler_words_are_not_attributes(self, query_service):
        result = await query_service.process_query("restaurants open late")
        assert result.type == "success"
        assert [p.id for p in result.pois] == ["r1", "r2"]

    async def test_suggested_examples_return_results(self, query_service):
        await query_service.repository.load()
        first_example = query_service.default_examples()[0]
        assert first_example == 'Try: "Find park in Testville"'

        result = await query_service.process_query(first_example.split('"')[1])
        assert result.type == "success"

        suggestion = query_service._no_groups_suggestions(
            ProximityQuery(target_type="restaurant", nearby_type="museum")
        )
        result = await query_service.process_query(suggestion.examples[0].split('"')[1])
        assert [p.id for p in result.pois] == ["r1", "r2"]

    async def test_mixed_attributes_exclude_untagged(self, query_service):
        # Politique retenue : dès qu'un POI porte des attributs, les POI sans attribut sont écartés
        with patch.object(
            query_service.extractor, "analyze", new_callable=AsyncMock,
            return_value=SimpleQuery(types=("restaurant", "park"), attributes=("thai",)),
        ):
            result = await query_service.process_query("thai restaurants and parks")
        assert [p.id for p in result.pois] == ["r1"]


@pytest.mark.asyncio
class TestProximityQueries:

    async def test_nearby_attribute_filter(self, query_service):
        result = await query_service.process_query("parks with nearby italian restaurants")
        assert isinstance(result, GroupedResult)
        assert [m.poi.id for m in result.groups[0].nearby] == ["r2"]

    async def test_nearby_attribute_filter_no_match_names_filters(self, query_service):
        result = await query_service.process_query("quiet parks with nearby mexican restaurants")
        assert isinstance(result, SuggestionsResult)
        assert result.message == (
            "No quiet parks found with mexican restaurants within 1.5 miles in Testville, TS."
        )

    async def test_all_nearby_sorted(self, query_service):
        result = await query_service.process_query("parks near restaurants")
        assert [m.poi.id for m in result.groups[0].nearby] == ["r1", "r2"]

    async def test_multiword_type_display(self, query_service):
        result = await query_service.process_query("museums near coffee shops")
        assert isinstance(result, SuggestionsResult)
        assert "museums found with coffee shops within 1.5 miles" in result.message


@pytest.mark.asyncio
class TestErrors:

    async def test_timeout(self, query_service):
        test_name = "test_timeout"
        print_test_name(test_name)
        try:
            release = asyncio.Event()

            async def slow_analyze(_query):
                await release.wait()
                return SimpleQuery(types=("park",))

            query_service.timeout_ms = 20
            with patch.object(query_service.extractor, "analyze", side_effect=slow_analyze):
                result = await query_service.process_query("parks")

            assert result == ErrorResult(message="Query processing timed out. Please try again.")
            release.set()
            await asyncio.sleep(0.01)
            print_test_result(test_name, passed=True)
        except Exception as e:
            print_test_result(test_name, passed=False)
            raise e

    async def test_analysis_failure_becomes_suggestions(self, query_service):
        analyzer = MagicMock()
        analyzer.ready.return_value = True
        analyzer.extract_phrase = AsyncMock(side_effect=RuntimeError("model crashed"))
        query_service.extractor.analyzer = analyzer

        result = await query_service.process_query("museums")

        assert isinstance(result, SuggestionsResult)
        assert result.message == "I couldn't identify any valid POI types in your query."

    async def test_unexpected_extraction_failure_becomes_suggestions(self, query_service):
        with patch.object(
            query_service.extractor, "analyze", new_callable=AsyncMock,
            side_effect=KeyError("boom"),
        ):
            result = await query_service.process_query("museums")
        assert isinstance(result, SuggestionsResult)

    async def test_malformed_dataset(self, query_service, mock_source):
        mock_source.load.return_value = {"supportedTypes": [], "pois": []}
        result = await query_service.process_query("museums")
        assert result == ErrorResult(message="POI data is malformed. Please contact support.")

    async def test_unreachable_dataset_then_retry(self, query_service, mock_source, sample_dataset):
        mock_source.load.side_effect = [DataFetchError("down"), sample_dataset]

        first = await query_service.process_query("museums")
        second = await query_service.process_query("museums")

        assert first == ErrorResult(message="Failed to load POI data. Please refresh the page.")
        assert isinstance(second, SuccessResult)

    async def test_validation_error_from_source(self, query_service, mock_source):
        mock_source.load.side_effect = DataValidationError("bad json")
        result = await query_service.process_query("museums")
        assert result.type == "error"

    async def test_unexpected_failure_is_generic_error(self, query_service):
        with patch.object(query_service, "_handle_simple", side_effect=ZeroDivisionError()):
            result = await query_service.process_query("museums")
        assert result == ErrorResult(
            message="An error occurred while processing your query. Please try again."
        )

    async def test_concurrent_queries_share_one_load(self, query_service, mock_source):
        results = await asyncio.gather(
            query_service.process_query("museums"),
            query_service.process_query("parks with nearby restaurants"),
            query_service.process_query("what types are supported?"),
        )
        assert [r.type for r in results] == ["success", "grouped", "types"]
        mock_source.load.assert_awaited_once()
