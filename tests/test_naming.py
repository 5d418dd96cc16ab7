from sfcluster.services.naming import safe_name, storage_account_name


def test_storage_account_name_keeps_valid_names():
    assert storage_account_name("sflogstore") == "sflogstore"


def test_storage_account_name_sanitizes():
    assert storage_account_name("SF-App_Dx.Store") == "sfappdxstore"
    assert storage_account_name("9logs") == "st9logs"
    assert storage_account_name("a") == "ast"
    assert len(storage_account_name("x" * 40)) == 24


def test_safe_name():
    assert safe_name("sfcluster dev") == "sfcluster-dev"
