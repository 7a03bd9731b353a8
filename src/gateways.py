#! /usr/bin/env python
# -*- coding: utf-8 -*-

"""
    支付宝各支付网关实现(电脑网站, 手机网站, APP, 当面付, 扫码, 转账)
"""

from urllib import parse

from src.exceptions import InvalidGatewayException
from src.responses import RedirectResponse, Response

import enum
import html


class GatewayType(enum.Enum):
    app = "app"
    pos = "pos"
    scan = "scan"
    transfer = "transfer"
    wap = "wap"
    web = "web"


class Gateway(object):
    """
    支付网关基类
        method: 接口名称
        product_code: 销售产品码, 为 None 时不填
    """
    method = None
    product_code = None

    def biz(self, params):
        biz = {}
        if self.product_code is not None:
            biz["product_code"] = self.product_code
        biz.update(params)
        return biz

    def pay(self, client, params, return_url=None, notify_url=None):
        payload = client.build_payload(
            self.method, self.biz(params), return_url=return_url, notify_url=notify_url
        )
        client.logger.debug("Paying A %s Order: %s %s", self.__class__.__name__, client.gateway, payload)
        return self.respond(client, payload)

    def respond(self, client, payload):
        raise NotImplementedError


class WebGateway(Gateway):
    """
    电脑网站支付, 默认返回自动提交的 POST 表单, http_method="GET" 时返回跳转
    """
    method = "alipay.trade.page.pay"
    product_code = "FAST_INSTANT_TRADE_PAY"

    def __init__(self, http_method="POST"):
        self.http_method = http_method.upper()
        if self.http_method not in ("GET", "POST"):
            raise ValueError("http_method must be GET or POST")

    def respond(self, client, payload):
        if self.http_method == "GET":
            return RedirectResponse(self.pay_url(client.gateway, client.charset, payload))
        return Response(self.pay_html(client.gateway, client.charset, payload))

    @staticmethod
    def pay_url(gateway, charset, payload):
        query = parse.urlencode(
            {k: v for k, v in payload.items() if v is not None}, encoding=charset
        )
        return "{}?{}".format(gateway, query)

    @staticmethod
    def pay_html(gateway, charset, payload):
        action = html.escape("{}?charset={}".format(gateway, charset))
        result = """<html>
             <head>
                 <meta http-equiv="Content-Type" content="text/html;charset=utf-8"/>
             </head>
             <body onload="javascript:document.alipay_submit.submit();">
                 <form id="alipay_submit" name="alipay_submit" action="{}" method="post">""".format(action)
        for key, value in payload.items():
            if value is None or value == "":
                continue
            result += """<input type="hidden" name="{0}" value="{1}"/>""".format(
                html.escape(str(key)), html.escape(str(value))
            )
        result = result + """<input type="submit" value="ok" style="display:none;"></form></body></html>"""
        return result


class WapGateway(WebGateway):
    """
    手机网站支付
    """
    method = "alipay.trade.wap.pay"
    product_code = "QUICK_WAP_WAY"


class AppGateway(Gateway):
    """
    APP 支付, 返回签名后的订单字符串, 由客户端 SDK 发起支付
    """
    method = "alipay.trade.app.pay"
    product_code = "QUICK_MSECURITY_PAY"

    def respond(self, client, payload):
        return Response(
            parse.urlencode(
                {k: v for k, v in payload.items() if v is not None}, encoding=client.charset
            ),
            headers={"Content-Type": "text/plain; charset=utf-8"},
        )


class PosGateway(Gateway):
    """
    当面付(条码支付)
    """
    method = "alipay.trade.pay"
    product_code = "FACE_TO_FACE_PAYMENT"

    def biz(self, params):
        biz = {"scene": "bar_code"}
        biz.update(super(PosGateway, self).biz(params))
        return biz

    def respond(self, client, payload):
        return client.request_api(payload)


class ScanGateway(Gateway):
    """
    扫码支付(统一收单线下交易预创建)
    """
    method = "alipay.trade.precreate"

    def respond(self, client, payload):
        return client.request_api(payload)


class TransferGateway(Gateway):
    """
    单笔转账到支付宝账户
    """
    method = "alipay.fund.trans.toaccount.transfer"

    def respond(self, client, payload):
        return client.request_api(payload)


GATEWAYS = {
    GatewayType.app: AppGateway,
    GatewayType.pos: PosGateway,
    GatewayType.scan: ScanGateway,
    GatewayType.transfer: TransferGateway,
    GatewayType.wap: WapGateway,
    GatewayType.web: WebGateway,
}


def get_gateway(gateway, **options):
    """
    获取支付网关
    :param gateway: GatewayType 或网关名称
    :param options: 网关参数, 如 http_method
    :return:
    """
    if not isinstance(gateway, GatewayType):
        try:
            gateway = GatewayType(str(gateway).lower())
        except ValueError:
            raise InvalidGatewayException("Pay Gateway [{}] not exists".format(gateway))
    return GATEWAYS[gateway](**options)
