"""
Tests for the regex customer-data extractors.
"""

import pytest
from leadbot.services.extraction_service import (
    budget_range_for,
    company_size_for,
    derive_role,
    extract_budget,
    extract_challenges,
    extract_company,
    extract_customer_info,
    extract_email,
    extract_employee_count,
    extract_industry,
    extract_name,
    extract_phone,
    extract_timeline,
    extract_title,
)
from leadbot.orchestration.state import merge_customer_info

from conftest import JOHN_SMITH_MESSAGE


class TestJohnSmithIntroduction:
    """A dense first message yields every field it mentions."""

    def test_full_extraction(self):
        """Test the introduction fills name, role, company, budget, timeline and challenge."""
        info = extract_customer_info(JOHN_SMITH_MESSAGE)
        assert info["name"] == "John Smith"
        assert info["role"] == "influencer"
        assert info["company"] == "Acme Corp"
        assert info["budget"] == "$100K-$250K"
        assert info["budget_amount"] == 150000
        assert info["timeline"] == "this_quarter"
        assert any("support ticket backlog" in c for c in info["current_challenges"])

    def test_title_keeps_department(self):
        """Test the title stops at the department."""
        assert extract_title(JOHN_SMITH_MESSAGE) == "VP of Engineering"

    def test_budget_context_beats_other_amounts(self):
        """Test the explicit budget wins over the $2M backlog figure."""
        assert extract_budget(JOHN_SMITH_MESSAGE).amount == 150000


class TestContactExtraction:
    """Test e-mail and phone extraction."""

    def test_email_lowercased(self):
        """Test e-mail is found and lower-cased."""
        assert extract_email("Reach me at Jane.Doe@Example.COM please") == "jane.doe@example.com"

    def test_no_email(self):
        """Test text without an address."""
        assert extract_email("no address here") is None

    def test_us_phone(self):
        """Test a formatted US number is reduced to digits."""
        assert extract_phone("Call (555) 123-4567 after lunch") == "5551234567"

    def test_international_phone(self):
        """Test an international number keeps its plus sign."""
        assert extract_phone("I'm on +44 7911123456") == "+447911123456"

    def test_short_number_rejected(self):
        """Test numbers under ten digits are not phones."""
        assert extract_phone("We have 12345 tickets") is None


class TestNameExtraction:
    """Test self-introduction parsing."""

    @pytest.mark.parametrize("text,expected", [
        ("My name is sarah connor", "Sarah"),
        ("This is Maria Garcia speaking", "Maria Garcia"),
        ("call me Bob", "Bob"),
        ("I am Priya Patel here", "Priya Patel"),
    ])
    def test_introductions(self, text, expected):
        """Test common introduction phrases."""
        assert extract_name(text) == expected

    @pytest.mark.parametrize("text", [
        "I'm looking for help with automation",
        "I'm interested in a demo",
        "I am with Acme Corp",
        "Hi, I'm excited to learn more",
        "I'm keen to see a demo",
        "I'm Excited about this",
        "i'm swamped with tickets",
    ])
    def test_non_names_rejected(self, text):
        """Test phrases after I'm that are not names."""
        assert extract_name(text) is None

    def test_mood_then_name(self):
        """Test a later introduction is still found after a rejected one."""
        assert extract_name("I'm excited! I'm Dana Reyes from Northwind") == "Dana Reyes"


class TestCompanyExtraction:
    """Test company name parsing."""

    def test_suffix_kept(self):
        """Test the legal suffix stays in the value."""
        assert extract_company("We're a team at Globex Solutions") == "Globex Solutions"

    def test_work_at_phrase(self):
        """Test 'I work at' introductions."""
        assert extract_company("I work at Initech and we are growing") == "Initech"

    def test_generic_phrase_rejected(self):
        """Test a possessive phrase alone is not a company."""
        assert extract_company("my business has grown a lot") is None

    def test_generic_phrase_with_name(self):
        """Test 'called X' after a generic phrase."""
        assert extract_company("my business is called Bright Homes") == "Bright Homes"


class TestIndustryExtraction:
    """Test industry vocabulary matching."""

    def test_industry_with_context(self):
        """Test vocabulary followed by a context word."""
        assert extract_industry("We are a healthcare company") == "Healthcare"

    def test_work_in_phrase(self):
        """Test 'we work in' phrasing."""
        assert extract_industry("we work in real estate mostly") == "Real Estate"

    def test_finance(self):
        """Test the finance special case."""
        assert extract_industry("I'm in the financial services space") == "Finance"

    def test_industry_without_context(self):
        """Test a bare word is not enough."""
        assert extract_industry("my retail purchases are late") is None


class TestRoleDerivation:
    """Test authority role mapping."""

    @pytest.mark.parametrize("title,role", [
        ("CEO", "decision_maker"),
        ("Founder", "decision_maker"),
        ("Vice President of Sales", "influencer"),
        ("Director of Operations", "influencer"),
        ("Software Engineer", "researcher"),
    ])
    def test_roles(self, title, role):
        """Test each title maps onto its tier."""
        assert derive_role(title) == role

    def test_no_title(self):
        """Test missing title."""
        assert derive_role(None) is None


class TestSizeAndBudget:
    """Test numeric extraction and bucketing."""

    def test_employee_count(self):
        """Test head count parsing."""
        assert extract_employee_count("We have 1,200 employees") == 1200

    @pytest.mark.parametrize("count,size", [
        (5, "startup"), (30, "small"), (100, "medium"), (400, "large"), (5000, "enterprise"),
    ])
    def test_company_size(self, count, size):
        """Test company size buckets."""
        assert company_size_for(count) == size

    @pytest.mark.parametrize("text,amount", [
        ("budget of 50k", 50000),
        ("we could spend $80,000", 80000),
        ("roughly $1.5M", 1500000),
        ("about 75 thousand dollars", 75000),
    ])
    def test_budget_amounts(self, text, amount):
        """Test money formats and multipliers."""
        assert extract_budget(text).amount == amount

    @pytest.mark.parametrize("amount,label", [
        (20000, "Under $50K"),
        (50000, "$50K-$100K"),
        (150000, "$100K-$250K"),
        (300000, "$250K-$500K"),
        (750000, "$500K-$1M"),
        (2000000, "Over $1M"),
    ])
    def test_budget_ranges(self, amount, label):
        """Test range boundaries."""
        assert budget_range_for(amount) == label

    def test_no_budget(self):
        """Test text without money."""
        assert extract_budget("we have not decided yet") is None


class TestTimelineExtraction:
    """Test timeline buckets."""

    @pytest.mark.parametrize("text,bucket", [
        ("we need this asap", "immediate"),
        ("can we start next week", "immediate"),
        ("sometime this month", "this_month"),
        ("targeting Q3", "this_quarter"),
        ("before the end of the year", "this_year"),
        ("probably next year", "next_year"),
    ])
    def test_buckets(self, text, bucket):
        """Test keyword to bucket mapping."""
        assert extract_timeline(text) == bucket

    def test_word_boundaries(self):
        """Test 'now' inside another word is ignored."""
        assert extract_timeline("I know the snowfall slowed us") is None


class TestChallengeExtraction:
    """Test pain point sentence detection."""

    def test_sentences_with_keywords(self):
        """Test only pain sentences are kept."""
        text = "Our invoicing is completely manual. We like our team! Errors keep creeping in."
        challenges = extract_challenges(text)
        assert challenges == ["Our invoicing is completely manual", "Errors keep creeping in"]

    def test_short_fragments_dropped(self):
        """Test fragments of ten characters or fewer are ignored."""
        assert extract_challenges("Slow. Manual.") == []

    def test_decimal_not_a_sentence_break(self):
        """Test a period inside a number does not split the sentence."""
        challenges = extract_challenges("Manual entry costs us 2.5 hours a day")
        assert challenges == ["Manual entry costs us 2.5 hours a day"]


class TestExtractCustomerInfo:
    """Test the combined patch builder."""

    def test_existing_fields_not_overwritten(self):
        """Test first-write-wins for populated fields."""
        patch = extract_customer_info("I'm Jane Roe, email jane@roe.io", {"name": "John Smith"})
        assert "name" not in patch
        assert patch["email"] == "jane@roe.io"

    def test_idempotent(self):
        """Test applying the same message twice changes nothing the second time."""
        info = merge_customer_info({}, extract_customer_info(JOHN_SMITH_MESSAGE))
        second = extract_customer_info(JOHN_SMITH_MESSAGE, info)
        assert second == {}
        assert merge_customer_info(info, second) == info

    def test_only_new_challenges(self):
        """Test known challenges are not repeated."""
        known = {"current_challenges": ["Our invoicing is completely manual"]}
        patch = extract_customer_info(
            "Our invoicing is completely manual. Data quality is poor too.", known
        )
        assert patch["current_challenges"] == ["Data quality is poor too"]
