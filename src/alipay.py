#! /usr/bin/env python
# -*- coding: utf-8 -*-

"""
    支付宝开放平台相关实现(支付, 查询, 退款, 撤销, 关闭, 对账单, 回调验签等)
"""

from collections import namedtuple
from collections.abc import Mapping

from config.settings import AlipayConfig

from src import support
from src.exceptions import (
    GatewayException,
    InvalidConfigException,
    InvalidSignException,
    TransportException,
)
from src.gateways import GatewayType, get_gateway
from src.responses import Response

import json
import codecs
import logging
import datetime
import requests

"""
支付宝接口类
    1, 同步跳转地址(return_url)为 GET 请求, 异步通知地址(notify_url)为 POST 请求, 订单处理以异步通知为准
    2, 异步通知验签通过后需返回 success, 否则支付宝会重复通知
    3, 沙箱环境 mode="dev", 正式环境 mode="normal"
    4, 接口调用不做重试, 是否重试由调用方根据异常类型决定(仅 TransportException 可重试)
"""

# 接口调用成功的返回码
SUCCESS_CODE = "10000"


class Identifier(namedtuple("Identifier", "value")):
    """
    订单号等单一标识
    """

    def to_biz(self, wrap):
        return wrap(self.value)


class Structured(namedtuple("Structured", "fields")):
    """
    完整的业务参数
    """

    def to_biz(self, wrap):
        return dict(self.fields)


def resolve_order(order):
    """
    订单参数可以是订单号或业务参数字典
    :param order:
    :return: Identifier 或 Structured
    """
    if isinstance(order, (Identifier, Structured)):
        return order
    if isinstance(order, Mapping):
        return Structured(order)
    if isinstance(order, (str, int)) and not isinstance(order, bool):
        return Identifier(str(order))
    raise TypeError("Order must be an identifier or a mapping, got {!r}".format(order))


def by_out_trade_no(value):
    return {"out_trade_no": value}


def by_bill_date(value):
    return {"bill_type": "trade", "bill_date": value}


def dumps(biz):
    return json.dumps(biz, ensure_ascii=False, separators=(",", ":"))


class Alipay(object):
    """
    支付宝接口类
    """

    def __init__(
            self,
            app_id,
            private_key=None,
            ali_public_key=None,
            return_url=None,
            notify_url=None,
            mode="normal",
            sign_type="RSA2",
            charset="utf-8",
            timeout=30,
            session=None,
            logger=None,
    ):
        if not app_id:
            raise InvalidConfigException("Missing Alipay Config -- [app_id]")

        self.app_id = app_id
        self.private_key = private_key
        self.ali_public_key = ali_public_key
        self.return_url = return_url
        self.notify_url = notify_url
        self.gateway = support.base_uri(mode)
        self.sign_type = support.get_sign_type(sign_type, InvalidConfigException)
        try:
            codecs.lookup(charset)
        except LookupError:
            raise InvalidConfigException("Unknown charset [{}]".format(charset))
        self.charset = charset
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_settings(cls, settings=AlipayConfig, **kwargs):
        """
        由配置类创建, kwargs 覆盖配置项
        """
        options = {
            "app_id": settings.app_id,
            "private_key": settings.private_key,
            "ali_public_key": settings.ali_public_key,
            "return_url": settings.return_url,
            "notify_url": settings.notify_url,
            "mode": settings.mode,
            "sign_type": settings.sign_type,
            "charset": settings.charset,
            "timeout": settings.timeout,
        }
        options.update(kwargs)
        return cls(**options)

    def build_payload(self, method, biz, return_url=None, notify_url=None):
        """
        构建签名后的请求参数
        :param method: 接口名称
        :param biz: 业务参数
        :return:
        """
        payload = {
            "app_id": self.app_id,
            "method": method,
            "format": "JSON",
            "charset": self.charset,
            "sign_type": self.sign_type.value,
            "version": "1.0",
            "return_url": return_url or self.return_url,
            "notify_url": notify_url or self.notify_url,
            "timestamp": datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            "biz_content": dumps(biz),
        }
        payload = {k: v for k, v in payload.items() if v is not None}
        self.get_sign(payload)
        return payload

    def get_sign(self, data):
        """
        获取签名
        :param data:
        :return:
        """
        data["sign"] = support.generate_sign(
            data, self.private_key, self.sign_type, self.charset
        )

    def pay(self, gateway, params=None, **options):
        """
        支付
        :param gateway: GatewayType 或网关名称(app, pos, scan, transfer, wap, web)
        :param params: 业务参数, 可包含 return_url, notify_url 覆盖配置
        :param options: 网关参数, 如 web/wap 的 http_method
        :return: Response 或接口返回结果
        """
        params = dict(params or {})
        return_url = params.pop("return_url", None)
        notify_url = params.pop("notify_url", None)

        return get_gateway(gateway, **options).pay(
            self, params, return_url=return_url, notify_url=notify_url
        )

    def web(self, params, http_method="POST"):
        return self.pay(GatewayType.web, params, http_method=http_method)

    def wap(self, params, http_method="POST"):
        return self.pay(GatewayType.wap, params, http_method=http_method)

    def app(self, params):
        return self.pay(GatewayType.app, params)

    def pos(self, params):
        return self.pay(GatewayType.pos, params)

    def scan(self, params):
        return self.pay(GatewayType.scan, params)

    def transfer(self, params):
        return self.pay(GatewayType.transfer, params)

    def find(self, order, refund=False):
        """
        查询订单(refund=True 时查询退款)
        :param order: 商户订单号或业务参数
        :param refund:
        :return:
        """
        method = "alipay.trade.fastpay.refund.query" if refund else "alipay.trade.query"
        payload = self.build_payload(method, resolve_order(order).to_biz(by_out_trade_no))
        self.logger.debug("Alipay Find An Order: %s %s", self.gateway, payload)
        return self.request_api(payload)

    def refund(self, order):
        """
        退款, 需要完整的业务参数(refund_amount 等)
        """
        order = resolve_order(order)
        if not isinstance(order, Structured):
            raise TypeError("Refund requires a mapping of refund parameters")
        payload = self.build_payload("alipay.trade.refund", order.to_biz(by_out_trade_no))
        self.logger.debug("Alipay Refund An Order: %s %s", self.gateway, payload)
        return self.request_api(payload)

    def cancel(self, order):
        payload = self.build_payload("alipay.trade.cancel", resolve_order(order).to_biz(by_out_trade_no))
        self.logger.debug("Alipay Cancel An Order: %s %s", self.gateway, payload)
        return self.request_api(payload)

    def close(self, order):
        payload = self.build_payload("alipay.trade.close", resolve_order(order).to_biz(by_out_trade_no))
        self.logger.debug("Alipay Close An Order: %s %s", self.gateway, payload)
        return self.request_api(payload)

    def download(self, bill):
        """
        查询对账单下载地址
        :param bill: 账单日期(yyyy-MM-dd 或 yyyy-MM)或业务参数
        :return: bill_download_url, 响应中没有对应结果时返回空字符串
        """
        payload = self.build_payload(
            "alipay.data.dataservice.bill.downloadurl.query",
            resolve_order(bill).to_biz(by_bill_date),
        )
        self.logger.debug("Alipay Download Bill: %s %s", self.gateway, payload)

        result, members = self.post(payload)
        if support.response_key(payload["method"]) not in result:
            self.logger.warning("Alipay Download Bill Without Result: %s", result)
            return ""
        return self.parse_result(payload, result, members).get("bill_download_url", "")

    def request_api(self, payload):
        """
        调用接口并校验返回结果签名
        :param payload: 签名后的请求参数
        :return: 接口返回的业务结果
        """
        result, members = self.post(payload)
        return self.parse_result(payload, result, members)

    def post(self, payload):
        charset = payload.get("charset", self.charset)
        data = {
            k: v.encode(charset) if isinstance(v, str) else v for k, v in payload.items()
        }
        try:
            res = self.session.post(self.gateway, data=data, timeout=self.timeout)
        except requests.RequestException as exc:
            raise TransportException(
                "Request Alipay API [{}] failed: {}".format(payload["method"], exc), raw=payload
            ) from exc

        if res.status_code != requests.codes.ok:
            raise TransportException(
                "Alipay API responded with {}".format(res.status_code), raw=payload
            )

        try:
            body = res.content.decode(charset)
            members = support.split_response(body)
        except ValueError as exc:
            raise GatewayException(
                "Alipay API response is not a valid JSON object: {}".format(exc), raw={"body": res.content}
            ) from exc
        result = {key: value for key, (value, _) in members.items()}

        self.logger.debug("Result Of Alipay API: %s", result)
        return result, members

    def parse_result(self, payload, result, members):
        """
        解析返回结果:
            成功: {"<method>_response": {"code": "10000", ...}, "sign": "..."}
            失败: {"<method>_response": {"code": "...", "msg": "...", "sub_code": "...", "sub_msg": "..."}}
        """
        key = support.response_key(payload["method"])
        content = result.get(key)
        if not isinstance(content, dict):
            content = result.get("error_response")
            if not isinstance(content, dict):
                raise GatewayException("Unrecognized Alipay API response", raw=result)

        if content.get("code") != SUCCESS_CODE:
            self.logger.warning("Alipay API Error: %s", content)
            raise GatewayException(
                "Get Alipay API Error: {} {}".format(content.get("msg"), content.get("sub_code") or ""),
                code=content.get("code"),
                msg=content.get("msg"),
                sub_code=content.get("sub_code"),
                sub_msg=content.get("sub_msg"),
                raw=result,
            )

        charset = payload.get("charset", self.charset)
        if key not in members:
            raise GatewayException("Unrecognized Alipay API response", raw=result)
        # 只信任已验签的顶层原始文本
        raw_content = members[key][1]
        content = json.loads(raw_content)
        signature = result.get("sign")
        if not signature or not support.verify(
            raw_content.encode(charset),
            signature,
            self.ali_public_key,
            payload.get("sign_type", self.sign_type),
        ):
            self.logger.warning("Alipay Sign Verify FAILED: %s", result)
            raise InvalidSignException("Alipay Sign Verify FAILED", raw=result)

        return content

    def verify(self, data):
        """
        支付宝回调签名校验
        :param data: 回调参数(dict, 或 urlencode 的 query/form 字符串)
        :return: 校验通过的参数
        """
        raw = data
        if isinstance(data, (str, bytes)):
            data = support.parse_arguments(data)
        data = support.flatten_params(data)

        charset = data.get("charset", data.get(b"charset"))
        if isinstance(charset, bytes):
            charset = charset.decode("ascii", "replace")
        charset = charset or support.LEGACY_CHARSET

        try:
            data = support.decode_params(support.encoding(data, "utf-8", charset), "utf-8")
        except (LookupError, UnicodeError) as exc:
            self.logger.warning("Alipay Sign Verify FAILED, undecodable charset [%s]: %s", charset, raw)
            raise InvalidSignException("Alipay Sign Verify FAILED", raw=raw) from exc

        self.logger.debug("Receive Alipay Request: %s", data)

        try:
            verified = support.verify_sign(
                data, self.ali_public_key, charset=charset, default_sign_type=self.sign_type
            )
        except InvalidSignException:
            self.logger.warning("Alipay Sign Verify FAILED: %s", data)
            raise
        except UnicodeError as exc:
            self.logger.warning("Alipay Sign Verify FAILED, not encodable as [%s]: %s", charset, data)
            raise InvalidSignException("Alipay Sign Verify FAILED", raw=data) from exc

        if verified:
            return data

        self.logger.warning("Alipay Sign Verify FAILED: %s", data)
        raise InvalidSignException("Alipay Sign Verify FAILED", raw=data)

    def success(self):
        """
        通知支付宝已收到回调
        """
        return Response("success", headers={"Content-Type": "text/plain; charset=utf-8"})


if __name__ == '__main__':

    # 配置 config/settings.py 或 ALIPAY_* 环境变量后运行
    logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(levelname)s %(message)s")
    alipay = Alipay.from_settings()

    # 电脑网站支付: 返回自动提交的表单, 由框架直接输出即可跳转至支付宝收银台
    response = alipay.web({
        "out_trade_no": datetime.datetime.now().strftime("%Y%m%d%H%M%S"),
        "total_amount": "0.01",
        "subject": "测试商品",
    })
    print(response.body)

    # 订单查询
    print(alipay.find("20171112034954"))
