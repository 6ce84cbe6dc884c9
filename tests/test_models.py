# tests/test_models.py
from contactscout.models import CrawlResult, CrawlStatus, FetchOutcome, Person, ProxyEndpoint, ProxyHealth


def test_person_identity_is_case_insensitive():
    assert Person("John", "Smith").identity_key == Person("JOHN", "smith ").identity_key == "john smith"
    assert Person("Cher").full_name == "Cher"


def test_result_sets_are_cleaned_and_blank_people_dropped():
    result = CrawlResult(
        url="https://a.test/",
        status=CrawlStatus.SUCCESS,
        emails={" a@b.io ", "", "a@b.io"},
        people=(Person(""), Person("Ann", "Lee")),
    )
    assert result.emails == {"a@b.io"}
    assert [p.full_name for p in result.people] == ["Ann Lee"]


def test_status_label():
    assert CrawlResult("u", CrawlStatus.HTTP_ERROR, http_status=403).status_label == "HTTP_403"
    assert CrawlResult("u", CrawlStatus.FAILED).status_label == "FAILED"
    assert CrawlResult("u", CrawlStatus.SUCCESS, http_status=200).status_label == "SUCCESS"


def test_from_outcome():
    http = CrawlResult.from_outcome(FetchOutcome("u", CrawlStatus.HTTP_ERROR, http_status=410))
    assert (http.status, http.http_status, http.notes) == (CrawlStatus.HTTP_ERROR, 410, "HTTP error 410")

    failed = CrawlResult.from_outcome(FetchOutcome("u", CrawlStatus.FAILED, error="timeout after 15s"))
    assert failed.notes == "ERROR: timeout after 15s"


def test_to_dict_is_sorted_and_json_ready():
    result = CrawlResult("u", CrawlStatus.SUCCESS, http_status=200, phones={"+2", "+1"},
                         people=(Person("Ann", "Lee", "CEO"),), notes="Found: 2 phone(s)")
    d = result.to_dict()
    assert d["phones"] == ["+1", "+2"]
    assert d["status"] == "SUCCESS"
    assert d["people"] == [{"first_name": "Ann", "last_name": "Lee", "role": "CEO", "email": None, "phone": None}]


def test_proxy_endpoint_hides_password():
    ep = ProxyEndpoint("10.0.0.1", 8080, "user", "hunter2")
    assert "hunter2" not in repr(ep)
    assert str(ep) == "10.0.0.1:8080"
    assert ep.url() == "http://10.0.0.1:8080"
    assert ep == ProxyEndpoint("10.0.0.1", 8080)


def test_proxy_health_rates():
    h = ProxyHealth()
    assert h.success_rate == 1.0
    h.record_success(now=1.0)
    h.record_failure(now=2.0)
    h.record_failure(now=3.0)
    assert h.total_requests == 3
    assert round(h.failure_rate, 2) == 0.67
    assert h.last_used_at == 3.0
