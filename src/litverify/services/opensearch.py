"""XML helpers shared by the OpenSearch feeds (CiNii Research, NDL Search)."""
import re
import xml.etree.ElementTree as ET
from typing import List, Optional

from ..types import CollaboratorError

NAMESPACES = {
    'rdf': 'http://www.w3.org/1999/02/22-rdf-syntax-ns#',
    'rdfs': 'http://www.w3.org/2000/01/rdf-schema#',
    'rss': 'http://purl.org/rss/1.0/',
    'dc': 'http://purl.org/dc/elements/1.1/',
    'dcterms': 'http://purl.org/dc/terms/',
    'dcndl': 'http://ndl.go.jp/dcndl/terms/',
    'prism': 'http://prismstandard.org/namespaces/basic/2.0/',
    'xsi': 'http://www.w3.org/2001/XMLSchema-instance',
}

XSI_TYPE = f"{{{NAMESPACES['xsi']}}}type"
RDF_RESOURCE = f"{{{NAMESPACES['rdf']}}}resource"


def parse_feed(xml_content: str, service: str) -> ET.Element:
    """Parse a feed body, turning XML errors into CollaboratorError."""
    try:
        return ET.fromstring(xml_content)
    except ET.ParseError as e:
        raise CollaboratorError(f"Failed to parse {service} response: {str(e)}", service=service) from e


def get_xml_text(element: ET.Element, *tags: str) -> str:
    """最初に見つかった空でない要素のテキストを返す"""
    for tag in tags:
        found = element.find(tag, NAMESPACES)
        if found is not None and found.text and found.text.strip():
            return found.text.strip()
    return ""


def get_all_text(element: ET.Element, tag: str) -> List[str]:
    texts = []
    for found in element.findall(tag, NAMESPACES):
        if found.text and found.text.strip():
            texts.append(found.text.strip())
    return texts


def extract_year(date: Optional[str]) -> str:
    """'2019-04', '2019年4月' -> '2019'"""
    if not date:
        return ""
    match = re.search(r'(\d{4})', date)
    return match.group(1) if match else ""


def clean_publisher_name(publisher: Optional[str]) -> str:
    """
    出版社名から地名と角括弧を除去する

    「東京 : 大法輪閣」→「大法輪閣」。除去後に空になる場合は元の値を返す
    """
    if not publisher:
        return ""
    cleaned = re.sub(r'^[^:：]+[：:]\s*', '', publisher)
    cleaned = re.sub(r'^\s*\[.*?\]\s*', '', cleaned)
    cleaned = re.sub(r'\s*\[.*?\]\s*$', '', cleaned)
    cleaned = cleaned.strip()
    return cleaned or publisher.strip()


def page_range(start: str, end: str) -> str:
    start = start if start != "-" else ""
    end = end if end != "-" else ""
    if start and end and start != end:
        return f"{start}-{end}"
    return start
