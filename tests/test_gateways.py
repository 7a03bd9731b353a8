#! /usr/bin/env python
# -*- coding: utf-8 -*-

from urllib import parse

from conftest import DEV_GATEWAY

from src import support
from src.exceptions import InvalidGatewayException
from src.gateways import GATEWAYS, GatewayType, WebGateway, get_gateway
from src.responses import RedirectResponse, Response

import re
import html
import json
import pytest

ORDER = {
    "out_trade_no": "20150320010101001",
    "total_amount": "88.88",
    "subject": "Iphone6 16G",
}


def hidden_inputs(body):
    return {
        html.unescape(name): html.unescape(value)
        for name, value in re.findall(r'<input type="hidden" name="([^"]*)" value="([^"]*)"/>', body)
    }


def assert_signed(payload, public_key):
    assert support.verify(
        support.canonicalize(payload), payload["sign"], public_key, payload["sign_type"]
    )


def test_dispatch_table_covers_every_gateway():
    assert set(GATEWAYS) == set(GatewayType)


class TestWeb(object):

    def test_post_form(self, client, session, app_keys):
        response = client.web(ORDER)

        assert isinstance(response, Response)
        assert response.status == 200
        assert 'action="{}?charset=utf-8"'.format(DEV_GATEWAY) in response.body
        assert "document.alipay_submit.submit()" in response.body
        assert session.calls == []

        payload = hidden_inputs(response.body)
        assert payload["method"] == "alipay.trade.page.pay"
        assert json.loads(payload["biz_content"]) == dict(ORDER, product_code="FAST_INSTANT_TRADE_PAY")
        assert_signed(payload, app_keys[1])

    def test_form_values_are_escaped(self, client):
        response = client.web(dict(ORDER, subject='<script>"x"</script>'))
        assert "<script>" not in response.body
        assert json.loads(hidden_inputs(response.body)["biz_content"])["subject"] == '<script>"x"</script>'

    def test_get_redirect(self, client, app_keys):
        response = client.web(ORDER, http_method="GET")

        assert isinstance(response, RedirectResponse)
        assert response.status == 302
        assert response.headers["Location"] == response.url
        url = parse.urlsplit(response.url)
        assert "{}://{}{}".format(url.scheme, url.netloc, url.path) == DEV_GATEWAY

        payload = {k: v[-1] for k, v in parse.parse_qs(url.query).items()}
        assert payload["method"] == "alipay.trade.page.pay"
        assert_signed(payload, app_keys[1])

    def test_invalid_http_method(self):
        with pytest.raises(ValueError):
            WebGateway(http_method="PUT")


class TestOtherGateways(object):

    def test_wap(self, client, app_keys):
        payload = hidden_inputs(client.wap(ORDER).body)
        assert payload["method"] == "alipay.trade.wap.pay"
        assert json.loads(payload["biz_content"])["product_code"] == "QUICK_WAP_WAY"
        assert_signed(payload, app_keys[1])

    def test_app(self, client, session, app_keys):
        response = client.app(ORDER)

        assert session.calls == []
        payload = {k: v[-1] for k, v in parse.parse_qs(response.body).items()}
        assert payload["method"] == "alipay.trade.app.pay"
        assert json.loads(payload["biz_content"])["product_code"] == "QUICK_MSECURITY_PAY"
        assert_signed(payload, app_keys[1])

    def test_pos(self, client, session, respond):
        respond("alipay.trade.pay", {"code": "10000", "msg": "Success", "trade_no": "2013"})
        result = client.pos(dict(ORDER, auth_code="28763443825664394"))

        assert result["trade_no"] == "2013"
        payload = session.last_payload()
        assert payload["method"] == "alipay.trade.pay"
        biz = json.loads(payload["biz_content"])
        assert biz["product_code"] == "FACE_TO_FACE_PAYMENT"
        assert biz["scene"] == "bar_code"
        assert biz["auth_code"] == "28763443825664394"

    def test_pos_scene_override(self, client, session, respond):
        respond("alipay.trade.pay", {"code": "10000", "msg": "Success"})
        client.pos(dict(ORDER, scene="wave_code"))
        assert json.loads(session.last_payload()["biz_content"])["scene"] == "wave_code"

    def test_scan(self, client, session, respond):
        respond("alipay.trade.precreate", {"code": "10000", "msg": "Success", "qr_code": "https://qr.alipay.com/x"})
        result = client.scan(ORDER)

        assert result["qr_code"] == "https://qr.alipay.com/x"
        payload = session.last_payload()
        assert payload["method"] == "alipay.trade.precreate"
        assert "product_code" not in json.loads(payload["biz_content"])

    def test_transfer(self, client, session, respond):
        respond("alipay.fund.trans.toaccount.transfer", {"code": "10000", "msg": "Success", "order_id": "2017"})
        order = {"out_biz_no": "3142321423432", "payee_type": "ALIPAY_LOGONID", "payee_account": "abc@sandbox.com", "amount": "12.23"}
        assert client.transfer(order)["order_id"] == "2017"
        assert session.last_payload()["method"] == "alipay.fund.trans.toaccount.transfer"


class TestPay(object):

    def test_unknown_gateway(self, client):
        with pytest.raises(InvalidGatewayException):
            client.pay("mini", ORDER)

    def test_gateway_by_name(self, client):
        assert hidden_inputs(client.pay("WEB", ORDER).body)["method"] == "alipay.trade.page.pay"
        assert isinstance(get_gateway(GatewayType.wap), WebGateway)

    def test_url_overrides(self, client):
        params = dict(ORDER, return_url="https://shop.example.com/r", notify_url="https://shop.example.com/n")
        payload = hidden_inputs(client.pay("web", params).body)

        assert payload["return_url"] == "https://shop.example.com/r"
        assert payload["notify_url"] == "https://shop.example.com/n"
        biz = json.loads(payload["biz_content"])
        assert "return_url" not in biz
        assert "notify_url" not in biz

    def test_configured_urls(self, client):
        payload = hidden_inputs(client.pay("web", ORDER).body)
        assert payload["return_url"] == "https://example.com/alipay/return/"
        assert payload["notify_url"] == "https://example.com/alipay/notify/"

    def test_params_are_not_mutated(self, client):
        params = dict(ORDER, return_url="https://shop.example.com/r")
        client.pay("web", params)
        assert params["return_url"] == "https://shop.example.com/r"
