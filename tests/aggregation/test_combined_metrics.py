"""Unit tests for merging the real and test partitions of a record."""
from __future__ import annotations

import copy

import pytest

from survey_insights.aggregation.combined import build_combined_metrics, combine_records

from metrics_factory import make_partition, make_question, make_record


@pytest.fixture()
def record():
    return make_record(
        course="Data Course (odd group)",
        real=make_partition(
            response_count=10,
            survey_count=2,
            active_survey_count=1,
            text_response_count=2,
            avg_overall=8,
            avg_course=9,
            rating_distribution={8: 10},
            question_stats=[make_question(total_answers=10, average=8, text_answers=["good"])],
            text_responses=["good", "long"],
        ),
        test=make_partition(
            response_count=5,
            survey_count=1,
            text_response_count=1,
            avg_overall=4,
            avg_course=None,
            rating_distribution={4: 5},
            question_stats=[make_question(total_answers=5, average=4, text_answers=["meh"])],
            text_responses=["good"],
        ),
    )


def test_real_only_ignores_test_partition(record):
    combined = build_combined_metrics(record, include_test_data=False)

    assert combined.source == "real"
    assert combined.response_count == 10
    assert combined.avg_overall == 8
    assert combined.rating_distribution[4] == 0
    assert combined.text_responses == ["good", "long"]


def test_including_test_data_sums_and_reweights(record):
    combined = build_combined_metrics(record, include_test_data=True)

    assert combined.source == "test"
    assert combined.response_count == 15
    assert combined.survey_count == 3
    assert combined.active_survey_count == 1
    assert combined.text_response_count == 3
    assert combined.avg_overall == pytest.approx(100 / 15)
    assert combined.avg_course == 9
    assert combined.avg_instructor is None
    assert combined.rating_distribution[8] == 10
    assert combined.rating_distribution[4] == 5
    (question,) = combined.question_stats
    assert question.total_answers == 15
    assert combined.text_responses == ["good", "long", "meh"]


def test_identity_fields_are_copied_and_course_normalized(record):
    combined = build_combined_metrics(record, include_test_data=True)
    assert (combined.education_year, combined.education_round) == (2024, 1)
    assert combined.course_name == "Data Course (odd group)"
    assert combined.normalized_course_name == "Data Course"


def test_empty_test_partition_keeps_real_source():
    record = make_record(real=make_partition(response_count=3, avg_overall=7))
    assert build_combined_metrics(record, include_test_data=True).source == "real"


def test_record_is_not_mutated(record):
    snapshot = copy.deepcopy(record)
    combined = build_combined_metrics(record, include_test_data=True)
    combined.rating_distribution[1] = 99
    combined.question_stats[0].text_answers.append("changed")
    assert record == snapshot


def test_combine_records_preserves_order(record):
    other = make_record(year=2023, course="Other")
    result = combine_records([record, other], include_test_data=False)
    assert [m.normalized_course_name for m in result] == ["Data Course", "Other"]
