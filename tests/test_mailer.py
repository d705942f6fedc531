import logging

from eiga.services.mailer import LogMailer


def test_log_mailer_logs_and_keeps_nothing(caplog):
    mailer = LogMailer()

    with caplog.at_level(logging.INFO, logger="eiga.services.mailer"):
        assert mailer.send_magic_link("a@cinephile.org", "http://localhost:8000/api/auth/callback?token=t") is True
        assert mailer.send_invite("b@cinephile.org", "http://localhost:8000/invite/EIGA-AAAA-BBBB", 7) is True

    assert "a@cinephile.org" in caplog.text
    assert "EIGA-AAAA-BBBB" in caplog.text
    assert vars(mailer) == {}
